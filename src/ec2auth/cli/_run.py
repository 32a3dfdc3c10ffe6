"""ec2auth run: build the components and drive the renewal scheduler."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import httpx
from rich.console import Console

from ec2auth.core.availability import AvailabilityGate
from ec2auth.core.config import AgentConfig, load_config
from ec2auth.core.constants import ExitCode
from ec2auth.core.exceptions import (
    ConfigError,
    PersistenceError,
    UnavailableHostError,
)
from ec2auth.core.logging_setup import configure_logging
from ec2auth.core.login import LoginOrchestrator
from ec2auth.core.scheduler import RenewalScheduler
from ec2auth.core.store import CredentialStore
from ec2auth.core.transport import build_client

logger = logging.getLogger(__name__)


def build_scheduler(config: AgentConfig, client: httpx.Client) -> RenewalScheduler:
    """Wire the store, gate and orchestrator around one shared HTTP client."""
    store = CredentialStore.from_config(config)
    return RenewalScheduler(
        config=config,
        orchestrator=LoginOrchestrator(config, client, store),
        store=store,
        gate=AvailabilityGate(config.retry_delay),
    )


def cmd_run(config_path: Path | None, overrides: dict[str, Any], console: Console) -> None:
    try:
        config = load_config(config_path, overrides)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    configure_logging(config.logging)
    logger.info(
        "ec2auth starting (role=%s, vault=%s, mode=%s)",
        config.role,
        config.vault_url,
        "agent" if config.agent else "once",
    )

    try:
        with build_client(config) as client:
            build_scheduler(config, client).run()
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)
    except UnavailableHostError as exc:
        logger.critical("%s", exc)
        sys.exit(ExitCode.NETWORK_ERROR)
    except PersistenceError as exc:
        logger.critical("%s", exc)
        sys.exit(ExitCode.PERSISTENCE_ERROR)
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(ExitCode.ERROR)
