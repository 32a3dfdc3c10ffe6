"""
Renewal scheduler: the top-level control loop.

One cycle::

    sleep until next_due
    wait for the Vault hostname to resolve
    log in, retrying every retry_delay seconds until it succeeds
    write token + nonce                      (failure ends the process)
    next_due = midpoint(now, lease_end)

``next_due`` starts at "now", so the first cycle runs immediately. In
single-run mode ``run`` returns after one cycle; in agent mode it loops.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from ec2auth.core.availability import AvailabilityGate
from ec2auth.core.clock import Clock, utc_now
from ec2auth.core.config import AgentConfig
from ec2auth.core.exceptions import AuthError
from ec2auth.core.login import LoginOrchestrator, LoginResult
from ec2auth.core.store import CredentialStore

logger = logging.getLogger(__name__)


def midpoint(a: datetime, b: datetime) -> datetime:
    """Halfway between *a* and *b*, whichever of the two is later."""
    earlier, later = (a, b) if a <= b else (b, a)
    return earlier + (later - earlier) / 2


def seconds_until(due: datetime, now: datetime) -> float:
    """Delay until *due*; never negative."""
    return max(0.0, (due - now).total_seconds())


class RenewalScheduler:
    """Drives the gate, the orchestrator and the store on a lease-driven timer."""

    def __init__(
        self,
        config: AgentConfig,
        orchestrator: LoginOrchestrator,
        store: CredentialStore,
        gate: AvailabilityGate,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._orchestrator = orchestrator
        self._store = store
        self._gate = gate
        self._clock = clock
        self._sleep = sleep
        self.next_due: datetime = clock()
        self.failed_attempts = 0

    def sleep_until(self, due: datetime) -> None:
        self._sleep(seconds_until(due, self._clock()))

    def run(self, max_cycles: int | None = None) -> int:
        """
        Run cycles until single-run mode is satisfied or *max_cycles* is hit.

        Returns:
            The number of completed cycles.

        Raises:
            UnavailableHostError: The Vault hostname cannot be resolved for a
                reason other than it not existing yet.
            PersistenceError: The credentials could not be read or written.
        """
        cycles = 0
        while True:
            self.run_cycle()
            cycles += 1
            if not self._config.agent:
                break
            if max_cycles is not None and cycles >= max_cycles:
                break
        return cycles

    def run_cycle(self) -> LoginResult:
        self.sleep_until(self.next_due)
        self._gate.await_available(self._config.hostname)

        result = self._login_until_success()
        self._store.persist(result.token, result.nonce)

        self.next_due = midpoint(self._clock(), result.lease_end)
        logger.info(
            "Successfully retrieved credentials. Credentials are valid until [%s].",
            result.lease_end.strftime("%a, %d %b %Y %H:%M:%S %z"),
        )
        if self._config.agent:
            logger.info("Next login at [%s]", self.next_due.isoformat(timespec="seconds"))
        return result

    def _login_until_success(self) -> LoginResult:
        while True:
            try:
                return self._orchestrator.authenticate()
            except AuthError as exc:
                self.failed_attempts += 1
                logger.error("%s", exc)
                logger.info("Retrying login in %d seconds", self._config.retry_delay)
                self._sleep(self._config.retry_delay)
