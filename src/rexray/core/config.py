"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) without polluting
  the CLI.
- Both services read paths and timeouts from the same settings snapshot,
  carried to them inside the operation context.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (``~/.rexray``).

    ``XDG_CONFIG_HOME`` is honoured when set, matching other tools on the
    same host.
    """

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "rexray"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "rexray"
    return Path.home() / ".rexray"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


class AppSettings(BaseSettings):
    """Central application settings.

    Why pydantic-settings:
    - Typing + validation at the edge (env vars) keeps the services free of
      parsing logic.
    - A single configuration contract for the CLI and the services.
    """

    model_config = SettingsConfigDict(
        env_prefix="REXRAY_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    home: Path | None = Field(
        default=None,
        description="Installation prefix (REXRAY_HOME). Unset or '/' means unprefixed.",
    )
    bin_name: str = Field(
        default="rexray",
        min_length=1,
        description="Name of the installed binary and of the service.",
    )
    known_hosts_path: Path | None = Field(
        default=None,
        description="Trust store file. Defaults to <user config dir>/known_hosts.",
    )
    tls_cert_file: Path | None = Field(
        default=None,
        description="Server certificate path. Defaults to <prefix>/etc/rexray/tls/rexray.crt.",
    )
    tls_key_file: Path | None = Field(
        default=None,
        description="Server private key path. Defaults to <prefix>/etc/rexray/tls/rexray.key.",
    )
    tls_port: int = Field(
        default=7979,
        ge=1,
        le=65535,
        description="Default controller port used by `known-hosts probe`.",
    )

    unit_dir: Path = Field(
        default=Path("/etc/systemd/system"),
        description="Directory that receives the systemd unit file.",
    )
    init_dir: Path = Field(
        default=Path("/etc/init.d"),
        description="Directory that receives the SysV init script.",
    )
    systemd_wants_dir: Path = Field(
        default=Path("/etc/systemd/system/docker.service.wants"),
        description="Directory where systemd links services wanted by docker.",
    )

    command_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for external commands (package managers, init systems).",
    )
    require_root: bool = Field(
        default=True,
        description="Refuse install/uninstall/service control unless running as root.",
    )
    lock_dir: Path = Field(
        default=Path("/var/lock"),
        description="Directory for the advisory lock serializing install/uninstall.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
