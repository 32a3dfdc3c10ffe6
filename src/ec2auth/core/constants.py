"""ec2auth constants: defaults, endpoints, timeouts, and exit codes."""

from __future__ import annotations

from enum import IntEnum, StrEnum

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    NETWORK_ERROR = 4
    PERSISTENCE_ERROR = 6


# ---------------------------------------------------------------------------
# Transport security
# ---------------------------------------------------------------------------


class TLSMode(StrEnum):
    VERIFY = "verify"
    # Skips certificate validation. Only for the window before the Vault
    # certificate chain is provisioned on the host.
    BOOTSTRAP_INSECURE = "bootstrap-insecure"


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_VAULT_URL = "https://vault.service.consul:8200"
DEFAULT_AUTH_MOUNT = "aws-ec2"
NONCE_FILENAME = ".vault-nonce"
TOKEN_FILENAME = ".vault-token"
DEFAULT_RETRY_DELAY_SECONDS = 30

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

IDENTITY_DOCUMENT_URL = "http://169.254.169.254/latest/dynamic/instance-identity/pkcs7"
HTTP_TIMEOUT_SECONDS = 10.0
LOGIN_PATH_TEMPLATE = "/v1/auth/{mount}/login"

# Longest lease accepted from Vault: 100 years.
MAX_LEASE_SECONDS = 100 * 365 * 24 * 60 * 60

# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------

CREDENTIAL_FILE_MODE = 0o600
CREDENTIAL_DIR_MODE = 0o700
