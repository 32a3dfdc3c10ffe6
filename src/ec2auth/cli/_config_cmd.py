"""ec2auth config show."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console

from ec2auth.core.config import config_to_dict, load_config
from ec2auth.core.constants import ExitCode
from ec2auth.core.exceptions import ConfigError


def cmd_config_show(
    config_path: Path | None, overrides: dict[str, Any], as_json: bool, console: Console
) -> None:
    try:
        cfg = load_config(config_path, overrides, require_role=False)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    data = config_to_dict(cfg)
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    import tomli_w

    if not cfg.role:
        console.print("[yellow]No role configured; `ec2auth run` will refuse to start.[/yellow]")
    click.echo(tomli_w.dumps(data))
