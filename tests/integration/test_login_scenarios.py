"""
End-to-end login scenarios over real components.

The store writes to tmp_path, the orchestrator talks to FakeVault through
httpx.MockTransport, and time/sleep come from FakeClock. Only DNS is stubbed.
"""

from __future__ import annotations

import socket
from datetime import timedelta
from pathlib import Path

import pytest

from ec2auth.core.availability import AvailabilityGate
from ec2auth.core.exceptions import PersistenceError
from ec2auth.core.login import LoginOrchestrator
from ec2auth.core.scheduler import RenewalScheduler
from ec2auth.core.store import CredentialStore
from tests.helpers import T0, FakeClock, FakeVault, login_payload


def _resolves(host, port, *args, **kwargs):
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.5", 0))]


def _build(config, vault: FakeVault, clock: FakeClock, resolve=_resolves) -> RenewalScheduler:
    store = CredentialStore.from_config(config)
    client = vault.client()
    return RenewalScheduler(
        config=config,
        orchestrator=LoginOrchestrator(config, client, store, clock=clock),
        store=store,
        gate=AvailabilityGate(config.retry_delay, resolve=resolve, sleep=clock.sleep),
        clock=clock,
        sleep=clock.sleep,
    )


class TestScenarioA:
    """No nonce file: initial login, files written, next wake at mid-lease."""

    def test_initial_login(
        self, make_config, vault: FakeVault, clock: FakeClock, token_path: Path, nonce_path: Path
    ) -> None:
        vault.proof = b"PROOF1"
        vault.responses = [(200, login_payload(token="T1", nonce="N1", lease=3600))]
        sched = _build(make_config(), vault, clock)

        assert sched.run() == 1

        assert vault.login_bodies == [{"role": "svc-a", "pkcs7": "PROOF1"}]
        assert token_path.read_text() == "T1"
        assert nonce_path.read_text() == "N1"
        assert sched.next_due == T0 + timedelta(seconds=1800)


class TestScenarioB:
    """Nonce file present: re-login carries the stored nonce."""

    def test_relogin(
        self, make_config, vault: FakeVault, clock: FakeClock, token_path: Path, nonce_path: Path
    ) -> None:
        nonce_path.write_text("N1")
        vault.proof = b"PROOF2"
        vault.responses = [(200, login_payload(token="T2", nonce="N1"))]
        _build(make_config(), vault, clock).run()

        assert vault.login_bodies == [{"role": "svc-a", "pkcs7": "PROOF2", "nonce": "N1"}]
        assert token_path.read_text() == "T2"
        assert nonce_path.read_text() == "N1"

    def test_initial_then_relogin_in_agent_mode(
        self, make_config, vault: FakeVault, clock: FakeClock, nonce_path: Path
    ) -> None:
        vault.responses = [
            (200, login_payload(token="T1", nonce="N1")),
            (200, login_payload(token="T2", nonce="N2")),
        ]
        _build(make_config(agent=True), vault, clock).run(max_cycles=2)

        assert "nonce" not in vault.login_bodies[0]
        assert vault.login_bodies[1]["nonce"] == "N1"
        assert nonce_path.read_text() == "N2"


class TestScenarioC:
    """Three rejected logins, then success; no files until the success."""

    def test_retries_then_writes(
        self, make_config, vault: FakeVault, clock: FakeClock, token_path: Path, nonce_path: Path
    ) -> None:
        seen_files: list[bool] = []
        vault.on_login = lambda: seen_files.append(token_path.exists() or nonce_path.exists())
        vault.responses = [
            (400, "role not found"),
            (400, "role not found"),
            (400, "role not found"),
            (200, login_payload(token="T1", nonce="N1")),
        ]
        sched = _build(make_config(retry_delay=30), vault, clock)

        sched.run()

        assert len(vault.login_bodies) == 4
        assert seen_files == [False, False, False, False]
        assert clock.sleeps == [0.0, 30, 30, 30]
        assert token_path.read_text() == "T1"
        assert nonce_path.read_text() == "N1"

    def test_rejections_leave_previous_pair(
        self, make_config, vault: FakeVault, clock: FakeClock, token_path: Path, nonce_path: Path
    ) -> None:
        token_path.write_text("T0")
        nonce_path.write_text("N0")
        snapshots: list[tuple[str, str]] = []
        vault.on_login = lambda: snapshots.append((token_path.read_text(), nonce_path.read_text()))
        vault.responses = [(500, "sealed"), (200, login_payload(token="T1", nonce="N1"))]

        _build(make_config(), vault, clock).run()

        assert snapshots == [("T0", "N0"), ("T0", "N0")]
        assert (token_path.read_text(), nonce_path.read_text()) == ("T1", "N1")


class TestScenarioD:
    """Single-run mode exits after one persist; agent mode sleeps to mid-lease."""

    def test_single_run(self, make_config, vault: FakeVault, clock: FakeClock) -> None:
        sched = _build(make_config(agent=False), vault, clock)
        assert sched.run() == 1
        assert len(vault.login_bodies) == 1
        assert clock.sleeps == [0.0]

    def test_agent_mode_loops(self, make_config, vault: FakeVault, clock: FakeClock) -> None:
        sched = _build(make_config(agent=True), vault, clock)
        assert sched.run(max_cycles=3) == 3
        assert len(vault.login_bodies) == 3
        assert clock.sleeps == [0.0, 1800.0, 1800.0]


class TestFatalPaths:
    def test_unwritable_token_path_is_fatal(
        self, make_config, vault: FakeVault, clock: FakeClock, tmp_path: Path, nonce_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        sched = _build(make_config(agent=True, token_path=blocker / "token"), vault, clock)

        with pytest.raises(PersistenceError):
            sched.run(max_cycles=5)

        assert len(vault.login_bodies) == 1
        assert not nonce_path.exists()

    def test_vault_not_yet_in_dns(self, make_config, vault: FakeVault, clock: FakeClock) -> None:
        failures = [socket.gaierror(socket.EAI_NONAME, "Name or service not known")] * 2

        def resolve(host, port, *args, **kwargs):
            if failures:
                raise failures.pop()
            return _resolves(host, port)

        _build(make_config(retry_delay=10), vault, clock, resolve=resolve).run()
        assert clock.sleeps == [0.0, 10, 10]
        assert len(vault.login_bodies) == 1
