"""ec2auth exception hierarchy.

``AuthError`` and its subclasses are transient: the scheduler logs them and
tries the same login again after the retry delay. Everything else that
reaches the CLI ends the process.
"""

from __future__ import annotations


class Ec2AuthError(Exception):
    """Base exception for all ec2auth errors."""


class ConfigError(Ec2AuthError):
    """Raised when the configuration is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """Raised when an explicitly named config file does not exist."""


class AuthError(Ec2AuthError):
    """Raised when a single login attempt fails."""


class TransportError(AuthError):
    """Raised when an outbound HTTP call cannot be completed."""


class IdentityFetchError(TransportError):
    """Raised when the instance identity document cannot be fetched."""


class LoginTransportError(TransportError):
    """Raised when the login POST cannot be completed."""


class LoginRejectedError(AuthError):
    """Raised when Vault answers the login with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(
            f"Login attempt failed with error code [{status_code} {reason}] - {body}"
        )


class LoginResponseError(AuthError):
    """Raised when a 2xx login response cannot be decoded."""


class UnavailableHostError(Ec2AuthError):
    """Raised when a hostname lookup fails for a reason other than absence."""


class PersistenceError(Ec2AuthError):
    """Raised when the token or nonce file cannot be read or written."""
