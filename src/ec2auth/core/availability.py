"""
Availability gate: wait until the Vault hostname resolves.

A Vault node that is mid-deployment, or a Consul service that has not been
registered yet, shows up as a name that does not resolve. That case is
waited out forever. Any other resolver failure points at a bad hostname or a
broken resolver and is raised instead.
"""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import Callable
from typing import Any

from ec2auth.core.exceptions import UnavailableHostError

logger = logging.getLogger(__name__)

# gaierror codes meaning "this name has no address (yet)"
_NOT_YET_RESOLVABLE = frozenset(
    code
    for code in (
        getattr(socket, "EAI_NONAME", None),
        getattr(socket, "EAI_NODATA", None),
        getattr(socket, "EAI_AGAIN", None),
    )
    if code is not None
)


def is_not_yet_resolvable(exc: socket.gaierror) -> bool:
    """True if *exc* means the name does not resolve, as opposed to a resolver fault."""
    return exc.errno in _NOT_YET_RESOLVABLE


class AvailabilityGate:
    """Blocks until a hostname resolves, sleeping ``retry_delay`` between lookups."""

    def __init__(
        self,
        retry_delay: float,
        resolve: Callable[..., Any] = socket.getaddrinfo,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._retry_delay = retry_delay
        self._resolve = resolve
        self._sleep = sleep

    def await_available(self, hostname: str) -> int:
        """
        Return once *hostname* resolves. The addresses are discarded.

        Returns:
            The number of failed lookups that were waited out.

        Raises:
            UnavailableHostError: The lookup failed for any reason other than
                the name not resolving.
        """
        if not hostname:
            raise UnavailableHostError("Cannot resolve an empty hostname")

        waits = 0
        while True:
            try:
                self._resolve(hostname, None)
            except socket.gaierror as exc:
                if not is_not_yet_resolvable(exc):
                    raise UnavailableHostError(f"Cannot resolve [{hostname}]: {exc}") from exc
                logger.info("waiting for vault server to become available at [%s]..", hostname)
                waits += 1
                self._sleep(self._retry_delay)
            except (UnicodeError, ValueError, OSError) as exc:
                raise UnavailableHostError(f"Cannot resolve [{hostname}]: {exc}") from exc
            else:
                return waits
