"""ec2auth service install: systemd unit for agent mode."""

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

import click
from rich.console import Console

from ec2auth.core.constants import ExitCode
from ec2auth.os.systemd.service import (
    enable_service,
    generate_unit_file,
    install_service,
    is_systemd_available,
    reload_daemon,
    unit_dir,
)


def cmd_service_install(
    config_path: Path | None,
    print_only: bool,
    enable: bool,
    start: bool,
    user_scope: bool,
    run_as: str | None,
    console: Console,
) -> None:
    exec_path = shutil.which("ec2auth") or sys.argv[0]
    try:
        unit = generate_unit_file(
            exec_path=str(Path(exec_path).resolve()),
            config_path=str(config_path.expanduser().resolve()) if config_path else None,
            user_scope=user_scope,
            run_as=run_as,
        )
    except ValueError as exc:
        console.print(f"[red]Invalid option:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    if print_only:
        click.echo(unit, nl=False)
        return

    try:
        unit_path = install_service(unit, user_scope=user_scope)
    except OSError as exc:
        console.print(f"[red]Cannot write unit to {unit_dir(user_scope)}:[/red] {exc}")
        if not user_scope:
            console.print("A system unit needs root; use sudo, or --user for a per-user unit.")
        sys.exit(ExitCode.ERROR)
    console.print(f"[green]Unit written:[/green] {unit_path}")

    if not is_systemd_available(user_scope):
        console.print("[yellow]systemd not available; skipping daemon-reload.[/yellow]")
        return

    systemctl = "systemctl --user" if user_scope else "systemctl"
    try:
        reload_daemon(user_scope)
        if enable:
            enable_service(user_scope, start=start)
            if start:
                console.print(f"[green]Enabled and started.[/green] Follow with: {systemctl} status ec2auth")
            else:
                console.print(f"[green]Enabled.[/green] Start with: {systemctl} start ec2auth")
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
        console.print(f"[red]systemctl failed[/red] (exit {exc.returncode}): {stderr or exc}")
        sys.exit(ExitCode.ERROR)
