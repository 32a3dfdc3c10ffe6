"""ec2auth configuration: Pydantic model, load, and render."""

from __future__ import annotations

import ipaddress
import os
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from ec2auth.core.constants import (
    DEFAULT_AUTH_MOUNT,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_VAULT_URL,
    HTTP_TIMEOUT_SECONDS,
    LOGIN_PATH_TEMPLATE,
    NONCE_FILENAME,
    TOKEN_FILENAME,
    TLSMode,
)
from ec2auth.core.exceptions import ConfigError, ConfigNotFoundError

CONFIG_ENV_VAR = "EC2AUTH_CONFIG"

# Environment variable -> top-level config key
_ENV_OVERRIDES = {
    "EC2AUTH_VAULT_URL": "vault_url",
    "EC2AUTH_ROLE": "role",
    "EC2AUTH_AWS_MOUNT": "auth_mount",
    "EC2AUTH_NONCE_PATH": "nonce_path",
    "EC2AUTH_TOKEN_PATH": "token_path",
    "EC2AUTH_AGENT": "agent",
    "EC2AUTH_RETRY_DELAY": "retry_delay",
    "EC2AUTH_TLS_MODE": "tls_mode",
    "EC2AUTH_CA_CERT": "ca_cert",
}

_HOST_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


def _is_valid_host(host: str) -> bool:
    """True for an IP literal or a DNS name made of valid labels."""
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    name = ascii_host[:-1] if ascii_host.endswith(".") else ascii_host
    if not name or len(name) > 253:
        return False
    return all(_HOST_LABEL.match(label) for label in name.split("."))


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {sorted(allowed)}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v.lower() not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v.lower()


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class AgentConfig(BaseModel):
    """Root ec2auth configuration model. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(default="", validate_default=True)
    vault_url: str = DEFAULT_VAULT_URL
    auth_mount: str = DEFAULT_AUTH_MOUNT
    nonce_path: Path = Field(default_factory=lambda: Path.home() / NONCE_FILENAME)
    token_path: Path = Field(default_factory=lambda: Path.home() / TOKEN_FILENAME)
    agent: bool = False
    retry_delay: int = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0)
    tls_mode: TLSMode = TLSMode.VERIFY
    ca_cert: Path | None = None
    http_timeout: float = Field(default=HTTP_TIMEOUT_SECONDS, gt=0)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("role")
    @classmethod
    def require_role(cls, v: str, info: ValidationInfo) -> str:
        required = (info.context or {}).get("require_role", True)
        if required and not v.strip():
            raise ValueError("Must provide a role to auth with.")
        return v.strip()

    @field_validator("vault_url")
    @classmethod
    def validate_vault_url(cls, v: str) -> str:
        if any(c.isspace() for c in v.strip()):
            raise ValueError(f"Vault URL must not contain whitespace: {v!r}")
        parts = urlsplit(v.strip())
        if parts.scheme not in ("http", "https"):
            raise ValueError(f"Vault URL must use http or https, got {v!r}")
        try:
            hostname = parts.hostname
            _ = parts.port  # raises ValueError on a malformed port
        except ValueError as exc:
            raise ValueError(f"Cannot parse Vault URL {v!r}: {exc}") from exc
        if not hostname:
            raise ValueError(f"Vault URL has no host: {v!r}")
        if not _is_valid_host(hostname):
            raise ValueError(f"Vault URL host is not a valid hostname or IP address: {hostname!r}")
        try:
            httpx.URL(v.strip())
        except httpx.InvalidURL as exc:
            raise ValueError(f"Cannot parse Vault URL {v!r}: {exc}") from exc
        return v.strip().rstrip("/")

    @field_validator("auth_mount")
    @classmethod
    def normalise_mount(cls, v: str) -> str:
        mount = v.strip().strip("/")
        if not mount:
            raise ValueError("Auth mount path must not be empty")
        return mount

    @field_validator("nonce_path", "token_path", "ca_cert", mode="before")
    @classmethod
    def expand_user(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @model_validator(mode="after")
    def distinct_credential_paths(self) -> AgentConfig:
        if self.token_path == self.nonce_path:
            raise ValueError("token_path and nonce_path must be different files")
        return self

    @property
    def hostname(self) -> str:
        """Hostname of the Vault server, as resolved by the availability gate."""
        return urlsplit(self.vault_url).hostname or ""

    @property
    def login_url(self) -> str:
        return self.vault_url + LOGIN_PATH_TEMPLATE.format(mount=self.auth_mount)


# ---------------------------------------------------------------------------
# Load / render
# ---------------------------------------------------------------------------


def _config_file_path(path: Path | None = None) -> Path | None:
    if path is not None:
        return path
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path).expanduser()
    return None


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
    require_role: bool = True,
) -> AgentConfig:
    """
    Build the AgentConfig from defaults, an optional TOML file, the
    environment, and explicit overrides (normally CLI flags).

    Priority (highest to lowest):
      1. *overrides* (keys whose value is None are ignored)
      2. Environment variables (EC2AUTH_*)
      3. Config file (--config or $EC2AUTH_CONFIG)
      4. Built-in defaults

    With *require_role* False a missing role is accepted, for commands that
    only inspect paths and settings.
    """
    import tomllib

    data: dict[str, Any] = {}
    cfg_path = _config_file_path(path)

    if cfg_path is not None:
        if not cfg_path.exists():
            raise ConfigNotFoundError(f"Config file not found: {cfg_path}")
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc

    _apply_env_overrides(data)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "logging":
            data.setdefault("logging", {}).update({k: v for k, v in value.items() if v is not None})
        else:
            data[key] = value

    try:
        return AgentConfig.model_validate(data, context={"require_role": require_role})
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc, cfg_path)) from exc


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay EC2AUTH_* environment variables onto the parsed TOML data."""
    for env_name, key in _ENV_OVERRIDES.items():
        if (value := os.environ.get(env_name)) is not None:
            data[key] = value
    if level := os.environ.get("EC2AUTH_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level


def _format_validation_error(exc: ValidationError, cfg_path: Path | None) -> str:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "config"
        msg = err["msg"].removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}")
    where = f" ({cfg_path})" if cfg_path else ""
    return f"Invalid configuration{where}: " + "; ".join(messages)


def config_to_dict(config: AgentConfig) -> dict[str, Any]:
    """Serialise *config* to plain TOML/JSON-safe types, dropping unset values."""
    data = config.model_dump(mode="json")
    return {k: v for k, v in data.items() if v is not None}
