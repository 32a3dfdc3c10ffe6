"""Instance identity proof: the signed PKCS#7 document from EC2 metadata."""

from __future__ import annotations

import logging

import httpx

from ec2auth.core.constants import IDENTITY_DOCUMENT_URL
from ec2auth.core.exceptions import IdentityFetchError
from ec2auth.core.transport import fetch_within_deadline

logger = logging.getLogger(__name__)


def fetch_identity_proof(client: httpx.Client, url: str = IDENTITY_DOCUMENT_URL) -> bytes:
    """
    GET the identity document and return the body verbatim.

    The body is returned even when it is empty or the status is not 2xx;
    Vault is the one that decides whether it is a valid proof. Only a failure
    to complete the request raises.

    Raises:
        IdentityFetchError: The metadata endpoint could not be reached or
            the response was not complete within the client timeout.
    """
    try:
        response, body = fetch_within_deadline(client, "GET", url)
    except httpx.HTTPError as exc:
        raise IdentityFetchError(f"Cannot fetch instance identity from {url}: {exc}") from exc

    if not response.is_success:
        logger.warning(
            "Instance identity endpoint answered %d %s (%d bytes)",
            response.status_code,
            response.reason_phrase,
            len(body),
        )
    return body
