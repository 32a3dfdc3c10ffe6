"""
systemd unit for the ec2auth agent.

On an EC2 instance the agent normally runs as a system service, so the Vault
token is renewed from boot whether or not anyone is logged in. ``--run-as``
puts a ``User=`` line in the unit; the token and nonce then land in that
user's home directory.

    sudo ec2auth service install --enable --run-as app
    systemctl status ec2auth
    journalctl -u ec2auth -f

``--user`` installs a per-user unit under ``~/.config/systemd/user/``
(respects $XDG_CONFIG_HOME) for hosts where the agent should only live as
long as a user session.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path

from ec2auth.core.store import replace_file

SERVICE_NAME = "ec2auth.service"
SYSTEM_UNIT_DIR = Path("/etc/systemd/system")
UNIT_FILE_MODE = 0o644
UNIT_DIR_MODE = 0o755

# Present only when PID 1 is systemd (sd_booted(3)).
SYSTEMD_RUNTIME_DIR = Path("/run/systemd/system")

_UNIT_TEMPLATE = """\
[Unit]
Description=ec2auth: Vault EC2 login agent
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
{user_line}ExecStart={exec_start}
Restart=on-failure
RestartSec=30s
SyslogIdentifier=ec2auth

[Install]
WantedBy={wanted_by}
"""


def generate_unit_file(
    exec_path: str,
    config_path: str | None = None,
    *,
    user_scope: bool = False,
    run_as: str | None = None,
) -> str:
    """
    Render the unit that keeps ``ec2auth run --agent`` running.

    Args:
        exec_path:   Absolute path to the ``ec2auth`` binary.
        config_path: Optional TOML config, passed through as ``--config``.
        user_scope:  Render a per-user unit (``WantedBy=default.target``)
                     instead of a system unit (``multi-user.target``).
        run_as:      Account the system unit runs under.

    Raises:
        ValueError: *run_as* was given for a per-user unit, or is not a
            single word.
    """
    if run_as is not None:
        if user_scope:
            raise ValueError("--run-as only applies to system units")
        if not run_as or any(c.isspace() for c in run_as):
            raise ValueError(f"Invalid account name: {run_as!r}")

    argv = [exec_path, "run", "--agent"]
    if config_path:
        argv += ["--config", config_path]
    return _UNIT_TEMPLATE.format(
        user_line=f"User={run_as}\n" if run_as else "",
        exec_start=shlex.join(argv),
        wanted_by="default.target" if user_scope else "multi-user.target",
    )


def unit_dir(user_scope: bool = False) -> Path:
    if not user_scope:
        return SYSTEM_UNIT_DIR
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config) / "systemd" / "user"


def install_service(unit_content: str, user_scope: bool = False) -> Path:
    """
    Atomically write the unit file and return its path.

    Raises:
        OSError: The unit directory is not writable (a system unit needs root).
    """
    unit_path = unit_dir(user_scope) / SERVICE_NAME
    replace_file(unit_path, unit_content, UNIT_FILE_MODE, UNIT_DIR_MODE)
    return unit_path


def _systemctl(*args: str, user_scope: bool) -> None:
    argv = ["systemctl"]
    if user_scope:
        argv.append("--user")
    subprocess.run([*argv, *args], check=True, capture_output=True)  # nosec B603 B607


def reload_daemon(user_scope: bool = False) -> None:
    """Make the service manager pick up the new unit file."""
    _systemctl("daemon-reload", user_scope=user_scope)


def enable_service(user_scope: bool = False, start: bool = False) -> None:
    """Enable the unit at boot (or login), optionally starting it right away."""
    args = ["enable", *(["--now"] if start else []), SERVICE_NAME]
    _systemctl(*args, user_scope=user_scope)


def is_systemd_available(user_scope: bool = False) -> bool:
    """
    True if this host is booted with systemd and, for a per-user unit, a
    user service manager is reachable.
    """
    if not SYSTEMD_RUNTIME_DIR.is_dir():
        return False
    if user_scope:
        return bool(os.environ.get("XDG_RUNTIME_DIR"))
    return True
