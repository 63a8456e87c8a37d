"""Install and uninstall rexray as a host service.

Supported init system families, probed in this order (first match wins):

- systemd (``systemctl``): unit file + environment file, ``systemctl enable``;
- update-rc.d: LSB init script, ``update-rc.d <name> defaults``;
- chkconfig: LSB init script, ``chkconfig <name> on``.

Installing twice overwrites the descriptor and re-registers. Uninstalling
twice succeeds: missing files and failing un-registration are logged and
tolerated. A failing registration during install is fatal, an installed but
unregistered service is a misleading half-state.

A manual uninstall first asks the RPM then the DEB database who owns the
binary; a managed binary is removed by its package manager only.
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Callable, Sequence

from rexray.adapters.file_lock import locked
from rexray.adapters.templates import render_init_script, render_unit_file
from rexray.core.context import OperationContext
from rexray.core.domain.models import (
    DETECTION_ORDER,
    InitSystemKind,
    InstallationOwnership,
    InstallResult,
    PackageManager,
    ServiceDescriptor,
    UninstallResult,
)
from rexray.core.errors import (
    FilesystemError,
    OperationCancelled,
    OwnershipQueryError,
    RegistrationCommandError,
    RexrayError,
    UnsupportedInitSystemError,
)
from rexray.core.interfaces.runner import CommandResult, CommandRunner

SERVICE_VERBS = ("start", "stop", "restart", "status")


def _rpm_package_name(output: str) -> str:
    lines = output.strip().splitlines()
    return lines[0].strip() if lines else ""


def _deb_package_name(output: str) -> str:
    # "<package>: <path>"
    lines = output.strip().splitlines()
    return lines[0].split(":", 1)[0].strip() if lines else ""


class ServiceInstaller:
    """Init-system aware service installer for one path layout."""

    def __init__(
        self,
        ctx: OperationContext,
        runner: CommandRunner,
        *,
        platform: str | None = None,
    ) -> None:
        self._ctx = ctx
        self._runner = runner
        self._layout = ctx.layout
        self._platform = platform or sys.platform
        self._log = ctx.child_logger("installer")

    @property
    def is_linux(self) -> bool:
        return self._platform.startswith("linux")

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_init_system(self) -> InitSystemKind:
        for kind in DETECTION_ORDER:
            exe = kind.probe_executable
            if exe and self._runner.which(exe):
                self._log.debug("detected init system %s", kind.value)
                return kind
        return InitSystemKind.UNKNOWN

    def query_ownership(self) -> InstallationOwnership:
        """Ask the RPM, then the DEB package database who owns the binary.

        Any `OwnershipQueryError` (tool missing, timeout, file not owned)
        means "not managed" and the next database is tried. Owned by neither
        falls through to UNMANAGED.
        """

        bin_path = str(self._layout.bin_file_path)
        queries = (
            (PackageManager.RPM, ["rpm", "-qf", bin_path], _rpm_package_name),
            (PackageManager.DEB, ["dpkg-query", "-S", bin_path], _deb_package_name),
        )
        for manager, args, parse in queries:
            try:
                name = self._query_owner(args, parse)
            except OwnershipQueryError as exc:
                self._log.debug("%s", exc)
                continue
            self._log.debug("%s owned by %s package %s", bin_path, manager.value, name)
            return InstallationOwnership(manager=manager, package_name=name)
        return InstallationOwnership.unmanaged()

    def _query_owner(self, args: Sequence[str], parse: Callable[[str], str]) -> str:
        result = self._runner.run(args)
        if result.timed_out:
            raise OwnershipQueryError(f"{args[0]} query timed out")
        if not result.ok:
            raise OwnershipQueryError(f"{' '.join(args)} failed: {result.output.strip()}")
        name = parse(result.output)
        if not name:
            raise OwnershipQueryError(f"{args[0]} returned no package name")
        return name

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    def unit_file_descriptor(self) -> ServiceDescriptor:
        layout = self._layout
        return ServiceDescriptor(
            kind=InitSystemKind.SYSTEMD,
            path=layout.unit_file_path,
            content=render_unit_file(
                bin_file_name=layout.bin_name,
                bin_file_path=layout.bin_file_path,
                env_file_path=layout.env_file_path,
            ),
            mode=0o644,
        )

    def init_script_descriptor(self, kind: InitSystemKind) -> ServiceDescriptor:
        layout = self._layout
        return ServiceDescriptor(
            kind=kind,
            path=layout.init_file_path,
            content=render_init_script(
                bin_file_name=layout.bin_name,
                bin_file_path=layout.bin_file_path,
            ),
            mode=0o755,
        )

    def env_file_content(self) -> str:
        if self._layout.is_prefixed:
            return f"REXRAY_HOME={self._layout.prefix}\n"
        return ""

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self) -> InstallResult:
        if not self.is_linux:
            self._log.warning("service install is only supported on Linux (platform=%s)", self._platform)
            return InstallResult(init_system=InitSystemKind.UNKNOWN)

        kind = self.detect_init_system()
        if kind is InitSystemKind.UNKNOWN:
            self._log.warning("no supported init system found (systemd, update-rc.d, chkconfig)")
            return InstallResult(init_system=kind)

        with locked(self._layout.install_lock_path):
            if kind is InitSystemKind.SYSTEMD:
                return self._install_systemd()
            return self._install_init_script(kind)

    def _install_systemd(self) -> InstallResult:
        descriptor = self.unit_file_descriptor()
        self._write(descriptor.path, descriptor.content, descriptor.mode)
        env_file = self._layout.env_file_path
        self._write(env_file, self.env_file_content(), 0o644)
        self._register(["systemctl", "enable", "-q", self._layout.unit_file_name])
        return InstallResult(init_system=InitSystemKind.SYSTEMD, descriptor=descriptor, env_file=env_file)

    def _install_init_script(self, kind: InitSystemKind) -> InstallResult:
        descriptor = self.init_script_descriptor(kind)
        self._write(descriptor.path, descriptor.content, descriptor.mode)
        name = self._layout.init_file_name
        if kind is InitSystemKind.UPDATE_RC_D:
            self._register(["update-rc.d", name, "defaults"])
        else:
            self._register(["chkconfig", name, "on"])
        return InstallResult(init_system=kind, descriptor=descriptor)

    def _write(self, path: Path, content: str, mode: int) -> None:
        # The handle is closed (content flushed) before chmod and before the
        # registration command reads the file.
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(content)
            path.chmod(mode)
        except OSError as exc:
            raise FilesystemError(f"failed to write {path}: {exc}") from exc
        self._log.info("wrote %s", path)

    def _register(self, args: Sequence[str]) -> CommandResult:
        result = self._runner.run(args, passthrough=True)
        if not result.ok:
            raise RegistrationCommandError(args, result.returncode, result.output)
        return result

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    def uninstall(self, *, package_manager: bool = False) -> UninstallResult:
        """Remove the service.

        `package_manager` is True when invoked from a package's removal
        scripts: the ownership check is skipped and the binary is left to
        the package manager.
        """

        result = UninstallResult()

        if not package_manager:
            self._log.debug("is %s a managed file?", self._layout.bin_file_path)
            ownership = self.query_ownership()
            if ownership.is_managed:
                result.ownership = ownership
                self._remove_package(ownership, result)
                return result

        with locked(self._layout.install_lock_path):
            self._stop_best_effort()

            kind = self.detect_init_system()
            result.init_system = kind
            if kind is InitSystemKind.SYSTEMD:
                self._uninstall_systemd(result)
            elif kind is InitSystemKind.UPDATE_RC_D:
                self._remove_file(self._layout.init_file_path, result)
                self._unregister(["update-rc.d", self._layout.init_file_name, "remove"], result)
            elif kind is InitSystemKind.CHKCONFIG:
                self._unregister(["chkconfig", "--del", self._layout.init_file_name], result)
                self._remove_file(self._layout.init_file_path, result)
            else:
                self._log.warning("no supported init system found, nothing to unregister")

            if not package_manager:
                self._remove_file(self._layout.bin_file_path, result)
                if self._layout.is_prefixed:
                    self._remove_tree(self._layout.root, result)

        return result

    def _remove_package(self, ownership: InstallationOwnership, result: UninstallResult) -> None:
        assert ownership.package_name
        if ownership.manager is PackageManager.RPM:
            args = ["rpm", "-e", ownership.package_name]
        else:
            args = ["dpkg", "-r", ownership.package_name]
        proc = self._runner.run(args, passthrough=True)
        if not proc.ok:
            message = f"error uninstalling {ownership.manager.value} package {ownership.package_name}"
            self._log.error("%s: %s", message, proc.output.strip())
            result.warnings.append(message)

    def _uninstall_systemd(self, result: UninstallResult) -> None:
        # Link created by systemd because docker "wants" this service.
        self._remove_file(self._layout.wants_link_path, result, quiet=True)
        self._unregister(["systemctl", "disable", "-q", self._layout.unit_file_name], result)
        self._remove_file(self._layout.unit_file_path, result)

    def _unregister(self, args: Sequence[str], result: UninstallResult) -> None:
        proc = self._runner.run(args, passthrough=True)
        if not proc.ok:
            message = f"uninstallation command failed: {' '.join(args)}"
            self._log.warning(message)
            result.warnings.append(message)

    def _remove_file(self, path: Path, result: UninstallResult, *, quiet: bool = False) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            if not quiet:
                self._log.debug("%s already absent", path)
            return
        except OSError as exc:
            message = f"failed to remove {path}: {exc}"
            self._log.warning(message)
            result.warnings.append(message)
            return
        result.removed.append(path)

    def _remove_tree(self, path: Path, result: UninstallResult) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            message = f"failed to remove {path}: {exc}"
            self._log.warning(message)
            result.warnings.append(message)
            return
        result.removed.append(path)

    def _stop_best_effort(self) -> None:
        try:
            self.control("stop")
        except OperationCancelled:
            raise
        except RexrayError as exc:
            self._log.debug("stop before uninstall failed: %s", exc)

    # ------------------------------------------------------------------
    # Service control
    # ------------------------------------------------------------------

    def control(self, verb: str) -> CommandResult:
        """Run start/stop/restart/status through the detected init system."""

        if verb not in SERVICE_VERBS:
            raise ValueError(f"unsupported service verb {verb!r}")
        kind = self.detect_init_system()
        if kind is InitSystemKind.SYSTEMD:
            args = ["systemctl", verb, self._layout.unit_file_name]
        elif kind.uses_init_script:
            args = [str(self._layout.init_file_path), verb]
        else:
            raise UnsupportedInitSystemError("no supported init system found")
        return self._runner.run(args, passthrough=True)
