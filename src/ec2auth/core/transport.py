"""HTTP transport: the shared client for the metadata and login calls."""

from __future__ import annotations

import logging
import ssl
import time
from typing import Any

import httpx

from ec2auth import __version__
from ec2auth.core.config import AgentConfig
from ec2auth.core.constants import TLSMode
from ec2auth.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


def resolve_verify(config: AgentConfig) -> bool | ssl.SSLContext:
    """Map the configured TLS mode to an httpx ``verify`` value."""
    if config.tls_mode is TLSMode.BOOTSTRAP_INSECURE:
        return False
    if config.ca_cert is not None:
        try:
            return ssl.create_default_context(cafile=str(config.ca_cert))
        except OSError as exc:
            raise ConfigError(f"Cannot load CA certificate {config.ca_cert}: {exc}") from exc
    return True


def build_client(config: AgentConfig, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """
    Build the one ``httpx.Client`` used for every outbound call.

    The client timeout bounds each connect, write and read step. The limit on
    a whole call is enforced by :func:`fetch_within_deadline`, which reads the
    same value back from ``client.timeout``.
    """
    verify = resolve_verify(config)
    if verify is False:
        logger.warning(
            "TLS certificate verification is DISABLED (tls_mode=%s). "
            "Use this only until the Vault certificate chain is provisioned.",
            config.tls_mode.value,
        )
    return httpx.Client(
        timeout=httpx.Timeout(config.http_timeout),
        verify=verify,
        headers={"User-Agent": f"ec2auth/{__version__}"},
        transport=transport,
    )


def fetch_within_deadline(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    deadline: float | None = None,
    **kwargs: Any,
) -> tuple[httpx.Response, bytes]:
    """
    Send one request and read the whole body within *deadline* seconds.

    *deadline* defaults to the client's read timeout. A server that keeps the
    connection alive by trickling bytes is cut off once the deadline passes.

    Returns:
        The closed response (status, reason and headers) and its decoded body.

    Raises:
        httpx.ReadTimeout: The response was not complete within the deadline.
        httpx.HTTPError: Any other transport failure.
    """
    budget = deadline if deadline is not None else client.timeout.read
    started = time.monotonic()

    def check(request: httpx.Request) -> None:
        if budget is not None and time.monotonic() - started > budget:
            raise httpx.ReadTimeout(
                f"{method} {url} did not complete within {budget:g}s", request=request
            )

    chunks: list[bytes] = []
    with client.stream(method, url, **kwargs) as response:
        check(response.request)
        for chunk in response.iter_bytes():
            chunks.append(chunk)
            check(response.request)
    return response, b"".join(chunks)
