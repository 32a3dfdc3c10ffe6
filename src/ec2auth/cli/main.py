"""
ec2auth CLI entry point.

Commands:
  ec2auth run [--agent]         - log in to Vault and write token + nonce
  ec2auth status                - show the token/nonce files (never their contents)
  ec2auth config show           - show the effective configuration
  ec2auth service install       - install a systemd unit for agent mode
  ec2auth version               - show version information
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from ec2auth import __version__

console = Console()
err_console = Console(stderr=True)

_path = click.Path(dir_okay=False, path_type=Path)


def config_options(fn):
    """Options shared by every command that loads the configuration."""
    options = [
        click.option("--config", "config_path", type=_path, default=None, help="TOML config file"),
        click.option("--vault-url", default=None, help="Full URL of the Vault node to auth against"),
        click.option("--role", default=None, help="The Vault role to request"),
        click.option("--aws-mount", default=None, help="The AWS auth mount path (default: aws-ec2)"),
        click.option("--nonce-path", type=_path, default=None, help="Path to the nonce file"),
        click.option("--token-path", type=_path, default=None, help="Path to the token file"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _overrides(**kwargs) -> dict:
    mapping = {
        "vault_url": kwargs.get("vault_url"),
        "role": kwargs.get("role"),
        "auth_mount": kwargs.get("aws_mount"),
        "nonce_path": kwargs.get("nonce_path"),
        "token_path": kwargs.get("token_path"),
    }
    return {k: v for k, v in mapping.items() if v is not None}


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="ec2auth %(version)s")
def cli() -> None:
    """ec2auth: log in to Vault with the EC2 instance identity and keep the token fresh."""


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@cli.command()
@config_options
@click.option(
    "--agent/--once",
    default=None,
    help="Keep renewing at the midpoint of every lease (default: run once and exit)",
)
@click.option("--retry-delay", type=click.IntRange(min=0), default=None, help="Seconds between retries")
@click.option(
    "--insecure-bootstrap/--verify-tls",
    "insecure_bootstrap",
    default=None,
    help="Skip TLS verification until the Vault CA is provisioned (--verify-tls forces it on)",
)
@click.option("--ca-cert", type=_path, default=None, help="CA bundle used to verify Vault")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--log-format", type=click.Choice(["text", "json"]), default=None)
def run(
    config_path: Path | None,
    agent: bool | None,
    retry_delay: int | None,
    insecure_bootstrap: bool | None,
    ca_cert: Path | None,
    log_level: str | None,
    log_format: str | None,
    **kwargs,
) -> None:
    """Log in to Vault and write the token and nonce files."""
    from ec2auth.cli._run import cmd_run

    tls_mode = None
    if insecure_bootstrap is not None:
        tls_mode = "bootstrap-insecure" if insecure_bootstrap else "verify"

    overrides = _overrides(**kwargs)
    overrides.update(
        agent=agent,
        retry_delay=retry_delay,
        ca_cert=ca_cert,
        tls_mode=tls_mode,
        logging={"level": log_level, "format": log_format},
    )
    cmd_run(config_path=config_path, overrides=overrides, console=err_console)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@config_options
@click.option("--json", "as_json", is_flag=True, default=False)
def status(config_path: Path | None, as_json: bool, **kwargs) -> None:
    """Show the token and nonce files."""
    from ec2auth.cli._status import cmd_status

    cmd_status(config_path=config_path, overrides=_overrides(**kwargs), as_json=as_json, console=console)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group("config")
def config_group() -> None:
    """Inspect the ec2auth configuration."""


@config_group.command("show")
@config_options
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
def config_show(config_path: Path | None, as_json: bool, **kwargs) -> None:
    """Display the effective configuration."""
    from ec2auth.cli._config_cmd import cmd_config_show

    cmd_config_show(
        config_path=config_path, overrides=_overrides(**kwargs), as_json=as_json, console=console
    )


# ---------------------------------------------------------------------------
# service
# ---------------------------------------------------------------------------


@cli.group()
def service() -> None:
    """systemd service management."""


@service.command("install")
@click.option("--config", "config_path", type=_path, default=None, help="Config file for the agent")
@click.option("--print", "print_only", is_flag=True, default=False, help="Print the unit, do not install")
@click.option("--enable", is_flag=True, default=False, help="Enable the unit after installing")
@click.option("--now", "start", is_flag=True, default=False, help="With --enable, also start the unit")
@click.option("--user", "user_scope", is_flag=True, default=False, help="Per-user unit instead of a system unit")
@click.option("--run-as", default=None, help="Account the system unit runs under (User=)")
def service_install(
    config_path: Path | None,
    print_only: bool,
    enable: bool,
    start: bool,
    user_scope: bool,
    run_as: str | None,
) -> None:
    """Install a systemd unit running `ec2auth run --agent`."""
    from ec2auth.cli._service import cmd_service_install

    cmd_service_install(
        config_path=config_path,
        print_only=print_only,
        enable=enable,
        start=start,
        user_scope=user_scope,
        run_as=run_as,
        console=console,
    )


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False)
def version(as_json: bool) -> None:
    """Show version information."""
    import platform
    import sys as _sys

    import httpx
    import pydantic

    info = {
        "ec2auth": __version__,
        "python": _sys.version.split()[0],
        "platform": _sys.platform,
        "arch": platform.machine(),
        "httpx": httpx.__version__,
        "pydantic": pydantic.VERSION,
    }
    if as_json:
        import json

        click.echo(json.dumps(info, indent=2))
    else:
        console.print(f"ec2auth {__version__}")
        console.print(f"Python {info['python']}")
        console.print(f"Platform: {info['platform']} {info['arch']}")
        console.print(f"httpx {info['httpx']}, pydantic {info['pydantic']}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
