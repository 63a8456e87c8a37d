"""Filesystem layout derived from settings.

The installation prefix (``REXRAY_HOME``) relocates the binary and the
``etc`` tree; the init system directories stay where the init system
expects them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rexray.core.config import AppSettings, get_user_config_dir


@dataclass(frozen=True)
class PathLayout:
    prefix: Path | None
    bin_name: str
    unit_dir: Path
    init_dir: Path
    systemd_wants_dir: Path
    known_hosts_path: Path
    tls_cert_file: Path
    tls_key_file: Path
    lock_dir: Path

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PathLayout":
        prefix = settings.home
        if prefix is not None and str(prefix) in ("", ".", "/"):
            prefix = None
        root = prefix or Path("/")
        etc_dir = root / "etc" / settings.bin_name
        return cls(
            prefix=prefix,
            bin_name=settings.bin_name,
            unit_dir=settings.unit_dir,
            init_dir=settings.init_dir,
            systemd_wants_dir=settings.systemd_wants_dir,
            known_hosts_path=settings.known_hosts_path or get_user_config_dir() / "known_hosts",
            tls_cert_file=settings.tls_cert_file or etc_dir / "tls" / f"{settings.bin_name}.crt",
            tls_key_file=settings.tls_key_file or etc_dir / "tls" / f"{settings.bin_name}.key",
            lock_dir=settings.lock_dir,
        )

    @property
    def is_prefixed(self) -> bool:
        return self.prefix is not None

    @property
    def root(self) -> Path:
        return self.prefix or Path("/")

    @property
    def bin_file_path(self) -> Path:
        return self.root / "usr" / "bin" / self.bin_name

    @property
    def etc_dir(self) -> Path:
        return self.root / "etc" / self.bin_name

    @property
    def env_file_path(self) -> Path:
        return self.etc_dir / f"{self.bin_name}.env"

    @property
    def unit_file_name(self) -> str:
        return f"{self.bin_name}.service"

    @property
    def unit_file_path(self) -> Path:
        return self.unit_dir / self.unit_file_name

    @property
    def init_file_name(self) -> str:
        return self.bin_name

    @property
    def init_file_path(self) -> Path:
        return self.init_dir / self.init_file_name

    @property
    def wants_link_path(self) -> Path:
        return self.systemd_wants_dir / self.unit_file_name

    @property
    def install_lock_path(self) -> Path:
        return self.lock_dir / f"{self.bin_name}.install.lock"
