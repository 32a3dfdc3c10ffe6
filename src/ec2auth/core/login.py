"""
Vault EC2 login.

One call to :meth:`LoginOrchestrator.authenticate` is one login attempt:

  1. fetch the instance identity document (PKCS#7)
  2. look for a nonce left by a previous login
  3. POST ``{role, pkcs7}`` (initial login) or ``{role, pkcs7, nonce}``
     (re-login) to ``{vault_url}/v1/auth/{mount}/login``
  4. turn the response into a :class:`LoginResult`

Vault tells the two request shapes apart only by the presence of ``nonce``.
Nothing here retries; the scheduler owns the retry policy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import httpx
from pydantic import BaseModel, Field, ValidationError

from ec2auth.core.clock import Clock, utc_now
from ec2auth.core.config import AgentConfig
from ec2auth.core.constants import MAX_LEASE_SECONDS
from ec2auth.core.exceptions import (
    LoginRejectedError,
    LoginResponseError,
    LoginTransportError,
)
from ec2auth.core.identity import fetch_identity_proof
from ec2auth.core.store import CredentialStore
from ec2auth.core.transport import fetch_within_deadline

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    role: str
    pkcs7: str
    nonce: str | None = None

    def to_body(self) -> dict[str, str]:
        """JSON body; ``nonce`` is omitted entirely on an initial login."""
        return self.model_dump(exclude_none=True)


class LoginMetadata(BaseModel):
    # Vault may leave this out when the client supplied its own nonce.
    nonce: str | None = None
    role: str | None = None
    region: str | None = None
    instance_id: str | None = None
    ami_id: str | None = None
    role_tag_max_ttl: str | None = None


class LoginAuth(BaseModel):
    client_token: str
    lease_duration: int = Field(ge=0, le=MAX_LEASE_SECONDS)
    renewable: bool = False
    accessor: str | None = None
    policies: list[str] | None = None
    metadata: LoginMetadata = Field(default_factory=LoginMetadata)


class LoginResponse(BaseModel):
    auth: LoginAuth
    request_id: str | None = None
    warnings: list[str] | None = None


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginResult:
    """Outcome of one successful login. ``token`` and ``nonce`` are secrets."""

    lease_end: datetime
    token: str = field(repr=False)
    nonce: str = field(repr=False)
    policies: tuple[str, ...] = ()
    accessor: str | None = None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class LoginOrchestrator:
    """Builds, sends and interprets one EC2 login request per call."""

    def __init__(
        self,
        config: AgentConfig,
        client: httpx.Client,
        store: CredentialStore,
        clock: Clock = utc_now,
        fetch_identity: Callable[[httpx.Client], bytes] = fetch_identity_proof,
    ) -> None:
        self._config = config
        self._client = client
        self._store = store
        self._clock = clock
        self._fetch_identity = fetch_identity

    def build_request(self, pkcs7: bytes) -> LoginRequest:
        """Pair the identity proof with the stored nonce, if there is one."""
        nonce_exists, nonce = self._store.has_nonce()
        return LoginRequest(
            role=self._config.role,
            pkcs7=pkcs7.decode("utf-8", errors="replace"),
            nonce=nonce if nonce_exists else None,
        )

    def authenticate(self) -> LoginResult:
        """
        Perform one login attempt.

        Raises:
            IdentityFetchError: The identity document could not be fetched.
            LoginTransportError: The login POST did not complete.
            LoginRejectedError: Vault answered with a status outside 2xx.
            LoginResponseError: The 2xx body is not a usable login response.
            PersistenceError: The nonce file exists but is unreadable.
        """
        pkcs7 = self._fetch_identity(self._client)
        request = self.build_request(pkcs7)
        url = self._config.login_url

        logger.info(
            "Requesting %s for role [%s] at %s",
            "re-login" if request.nonce is not None else "initial login",
            request.role,
            url,
        )

        try:
            response, body = fetch_within_deadline(self._client, "POST", url, json=request.to_body())
        except httpx.HTTPError as exc:
            raise LoginTransportError(f"Login request to {url} failed: {exc}") from exc

        if not response.is_success:
            raise LoginRejectedError(
                response.status_code,
                response.reason_phrase,
                body.decode("utf-8", errors="replace"),
            )

        try:
            payload = LoginResponse.model_validate_json(body)
        except ValidationError as exc:
            raise LoginResponseError(f"Cannot decode login response from {url}: {exc}") from exc

        auth = payload.auth
        for warning in payload.warnings or []:
            logger.warning("Vault: %s", warning)

        nonce = auth.metadata.nonce
        if nonce is None:
            if request.nonce is None:
                raise LoginResponseError(f"Login response from {url} carries no nonce")
            logger.debug("Vault kept the client nonce for role [%s]", request.role)
            nonce = request.nonce
        elif request.nonce is not None and nonce != request.nonce:
            logger.info("Vault issued a new nonce for role [%s]", request.role)
        if not nonce:
            logger.warning("Vault returned an empty nonce; the next login will be an initial login")

        return LoginResult(
            lease_end=self._clock() + timedelta(seconds=auth.lease_duration),
            token=auth.client_token,
            nonce=nonce,
            policies=tuple(auth.policies or ()),
            accessor=auth.accessor,
        )
