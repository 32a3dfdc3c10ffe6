"""ec2auth status: show the credential files without reading them."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console

from ec2auth.core.config import load_config
from ec2auth.core.constants import ExitCode
from ec2auth.core.exceptions import ConfigError
from ec2auth.core.store import CredentialStore, FileStatus


def _row(label: str, fs: FileStatus) -> dict[str, Any]:
    return {
        "name": label,
        "path": str(fs.path),
        "exists": fs.exists,
        "size": fs.size,
        "mode": oct(fs.mode) if fs.mode is not None else None,
        "private": fs.private,
    }


def cmd_status(
    config_path: Path | None, overrides: dict[str, Any], as_json: bool, console: Console
) -> None:
    try:
        config = load_config(config_path, overrides, require_role=False)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    token_fs, nonce_fs = CredentialStore.from_config(config).describe()
    rows = [_row("token", token_fs), _row("nonce", nonce_fs)]

    if as_json:
        print(json.dumps({"vault_url": config.vault_url, "files": rows}, indent=2))
        return

    console.print("[bold]ec2auth status[/bold]\n")
    console.print(f"  Vault: {config.vault_url}  (mount: {config.auth_mount})\n")
    for r in rows:
        if not r["exists"]:
            icon = "[yellow]MISSING[/yellow]"
            detail = ""
        elif not r["private"]:
            icon = "[red]OPEN[/red]   "
            detail = f"{r['size']} bytes, mode {r['mode']} (should be 0o600)"
        else:
            icon = "[green]OK[/green]     "
            detail = f"{r['size']} bytes, mode {r['mode']}"
        console.print(f"  {icon} {r['name']:<6} {r['path']}  {detail}")
