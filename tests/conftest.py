"""Shared fixtures: a frozen clock, a fake Vault + metadata server, and config."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from ec2auth.core.config import AgentConfig
from tests.helpers import VAULT_URL, FakeClock, FakeVault

_PROXY_VARS = {"http_proxy", "https_proxy", "all_proxy", "no_proxy"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def vault() -> FakeVault:
    return FakeVault()


@pytest.fixture
def token_path(tmp_path: Path) -> Path:
    return tmp_path / ".vault-token"


@pytest.fixture
def nonce_path(tmp_path: Path) -> Path:
    return tmp_path / ".vault-nonce"


@pytest.fixture
def make_config(token_path: Path, nonce_path: Path):
    def _make(**kwargs: Any) -> AgentConfig:
        data: dict[str, Any] = {
            "role": "svc-a",
            "vault_url": VAULT_URL,
            "token_path": token_path,
            "nonce_path": nonce_path,
            "retry_delay": 30,
        }
        data.update(kwargs)
        return AgentConfig(**data)

    return _make


@pytest.fixture(autouse=True)
def clean_ec2auth_env(monkeypatch) -> None:
    """Keep EC2AUTH_* and proxy variables from the developer's shell out of every test."""
    import os

    for name in list(os.environ):
        if name.startswith("EC2AUTH_") or name.lower() in _PROXY_VARS:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_ec2auth_logger():
    """`ec2auth run` installs a handler on the captured stderr; undo it after each test."""
    import logging

    root = logging.getLogger("ec2auth")
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate
