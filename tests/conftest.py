"""Shared test fixtures for rexray.

Every fixture points the path layout at `tmp_path`, so no test touches the
real /etc, /usr or the user's known_hosts file.
"""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest

from rexray.core.config import AppSettings
from rexray.core.context import OperationContext
from rexray.core.errors import OperationCancelled
from rexray.core.interfaces.runner import CommandResult

NOT_OWNED = {
    ("rpm", "-qf"): (1, "file is not owned by any package\n"),
    ("dpkg-query", "-S"): (1, "dpkg-query: no path found matching pattern\n"),
}


class FakeRunner:
    """Recording `CommandRunner`.

    `executables` are the names `which` finds. `responses` maps either the
    first two argv items or the first argv item to ``(returncode, output)``;
    anything unmatched succeeds with no output. A command starting with
    `cancel_on` raises `OperationCancelled`, as a cancelled context would.
    """

    def __init__(
        self,
        executables: Sequence[str] = (),
        responses: dict[tuple[str, ...], tuple[int | None, str]] | None = None,
        cancel_on: tuple[str, ...] | None = None,
    ) -> None:
        self.executables = set(executables)
        self.responses = dict(NOT_OWNED)
        self.responses.update(responses or {})
        self.calls: list[tuple[str, ...]] = []
        self.cancel_on = cancel_on

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.executables else None

    def run(self, args: Sequence[str], *, passthrough: bool = False) -> CommandResult:
        argv = tuple(str(a) for a in args)
        self.calls.append(argv)
        if self.cancel_on and argv[: len(self.cancel_on)] == self.cancel_on:
            raise OperationCancelled("operation cancelled")
        for key in (argv[:2], argv[:1]):
            if key in self.responses:
                rc, output = self.responses[key]
                return CommandResult(args=argv, returncode=rc, output=output)
        return CommandResult(args=argv, returncode=0, output="")

    def called(self, *prefix: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]


def make_settings(tmp_path: Path, **overrides: object) -> AppSettings:
    values: dict[str, object] = {
        "home": tmp_path / "prefix",
        "known_hosts_path": tmp_path / "home" / ".rexray" / "known_hosts",
        "unit_dir": tmp_path / "etc" / "systemd" / "system",
        "init_dir": tmp_path / "etc" / "init.d",
        "systemd_wants_dir": tmp_path / "etc" / "systemd" / "system" / "docker.service.wants",
        "lock_dir": tmp_path / "lock",
        "require_root": False,
    }
    values.update(overrides)
    return AppSettings(**values)


def settings_env(tmp_path: Path, **overrides: str) -> dict[str, str]:
    """The `make_settings` layout expressed as REXRAY_* environment variables."""

    env = {
        "REXRAY_HOME": str(tmp_path / "prefix"),
        "REXRAY_KNOWN_HOSTS_PATH": str(tmp_path / "home" / ".rexray" / "known_hosts"),
        "REXRAY_UNIT_DIR": str(tmp_path / "etc" / "systemd" / "system"),
        "REXRAY_INIT_DIR": str(tmp_path / "etc" / "init.d"),
        "REXRAY_SYSTEMD_WANTS_DIR": str(tmp_path / "etc" / "systemd" / "system" / "docker.service.wants"),
        "REXRAY_LOCK_DIR": str(tmp_path / "lock"),
        "REXRAY_REQUIRE_ROOT": "false",
        "REXRAY_TLS_CERT_FILE": str(tmp_path / "tls" / "rexray.crt"),
        "REXRAY_TLS_KEY_FILE": str(tmp_path / "tls" / "rexray.key"),
    }
    env.update(overrides)
    return env


@pytest.fixture()
def settings(tmp_path: Path) -> AppSettings:
    return make_settings(tmp_path)


@pytest.fixture()
def ctx(settings: AppSettings) -> OperationContext:
    return OperationContext(settings=settings)


@pytest.fixture()
def known_hosts_path(settings: AppSettings) -> Path:
    assert settings.known_hosts_path is not None
    return settings.known_hosts_path
