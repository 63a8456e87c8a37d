"""Command tree and dispatcher.

The only module that turns results and typed errors into exit codes:
services raise `RexrayError` subclasses, `_handled` prints operator guidance
and raises `typer.Exit` with the error's code.
"""

from __future__ import annotations

import ssl
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from rexray.adapters.process_runner import SubprocessRunner
from rexray.adapters.self_cert import create_self_cert
from rexray.adapters.tls_probe import probe_peer_identity
from rexray.cli import doctor
from rexray.cli.ui_components import (
    build_known_hosts_table,
    print_error,
    print_host_key_warning,
    print_install_notice,
    print_uninstall_summary,
    trust_prompt_text,
)
from rexray.core.config import AppSettings
from rexray.core.context import OperationContext
from rexray.core.domain.models import PendingIdentity
from rexray.core.errors import RexrayError, TrustConflictError, TrustRefusedError
from rexray.core.log import configure_logging
from rexray.core.privileges import check_op_perms
from rexray.core.services.host_trust import (
    ConfirmCallback,
    HostTrustStore,
    TrustResolution,
    resolve_identity,
)
from rexray.core.services.service_installer import ServiceInstaller

app = typer.Typer(
    no_args_is_help=True,
    help="REX-Ray host tooling: service installation and controller host trust.",
)
service_app = typer.Typer(no_args_is_help=True, help="Control the installed REX-Ray service.")
known_hosts_app = typer.Typer(no_args_is_help=True, help="Manage trusted controller identities.")
cert_app = typer.Typer(no_args_is_help=True, help="TLS certificate helpers.")

app.add_typer(service_app, name="service")
app.add_typer(known_hosts_app, name="known-hosts")
app.add_typer(cert_app, name="cert")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def _op(ctx: typer.Context) -> OperationContext:
    op = ctx.find_object(OperationContext)
    if op is None:
        raise RuntimeError("operation context not initialized")
    return op


def _installer(op: OperationContext) -> ServiceInstaller:
    return ServiceInstaller(op, SubprocessRunner(op))


@contextmanager
def _handled() -> Iterator[None]:
    try:
        yield
    except TrustConflictError as exc:
        print_host_key_warning(
            host=exc.pending.host_name,
            alg=exc.pending.algorithm,
            fingerprint=exc.pending.fingerprint_text,
            path=exc.store_path,
        )
        raise typer.Exit(exc.exit_code) from exc
    except TrustRefusedError as exc:
        typer.echo("Aborting request, remote host not trusted.", err=True)
        raise typer.Exit(exc.exit_code) from exc
    except RexrayError as exc:
        print_error(_err_console, exc, colorized=sys.stderr.isatty())
        raise typer.Exit(exc.exit_code) from exc


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (debug, info, warning, error). Overrides REXRAY_LOG_LEVEL.",
    ),
) -> None:
    """Build the operation context shared by every command."""

    try:
        settings = AppSettings()
    except ValidationError as exc:
        print_error(_err_console, exc, colorized=sys.stderr.isatty())
        raise typer.Exit(1) from exc
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    try:
        logger = configure_logging(settings.log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    ctx.obj = OperationContext(settings=settings, logger=logger)


# ----------------------------------------------------------------------
# install / uninstall
# ----------------------------------------------------------------------


@app.command()
def install(ctx: typer.Context) -> None:
    """Install REX-Ray as a service of the host init system."""

    op = _op(ctx)
    with _handled():
        check_op_perms(op, "installed")
        result = _installer(op).install()
    if result.performed:
        print_install_notice(_console, result, op.layout)
    else:
        _console.print("[yellow]No supported init system found; nothing installed.[/yellow]")


@app.command()
def uninstall(
    ctx: typer.Context,
    package: bool = typer.Option(
        False,
        "--package",
        help="Invoked by a package manager: skip the ownership check and leave the binary in place.",
    ),
) -> None:
    """Uninstall the REX-Ray service (and binary, for manual installs)."""

    op = _op(ctx)
    with _handled():
        check_op_perms(op, "uninstalled")
        result = _installer(op).uninstall(package_manager=package)
    print_uninstall_summary(_console, result)


# ----------------------------------------------------------------------
# service
# ----------------------------------------------------------------------


def _control(ctx: typer.Context, verb: str, op_name: str | None) -> None:
    op = _op(ctx)
    with _handled():
        if op_name:
            check_op_perms(op, op_name)
        result = _installer(op).control(verb)
    if not result.ok:
        raise typer.Exit(1 if result.returncode is None else result.returncode)


@service_app.command("start")
def service_start(ctx: typer.Context) -> None:
    """Start the service."""

    _control(ctx, "start", "started")


@service_app.command("stop")
def service_stop(ctx: typer.Context) -> None:
    """Stop the service."""

    _control(ctx, "stop", "stopped")


@service_app.command("restart")
def service_restart(ctx: typer.Context) -> None:
    """Restart the service."""

    _control(ctx, "restart", "restarted")


@service_app.command("status")
def service_status(ctx: typer.Context) -> None:
    """Print the service status."""

    _control(ctx, "status", None)


@service_app.command("initsys")
def service_initsys(ctx: typer.Context) -> None:
    """Print the detected init system."""

    kind = _installer(_op(ctx)).detect_init_system()
    typer.echo(kind.value)


# ----------------------------------------------------------------------
# known-hosts
# ----------------------------------------------------------------------


def _confirm_identity(assume_yes: bool) -> ConfirmCallback:
    def confirm(pending: PendingIdentity) -> bool:
        if assume_yes:
            return True
        answer = typer.prompt(
            trust_prompt_text(host=pending.host_name, alg=pending.algorithm, fingerprint=pending.fingerprint_text),
            default="no",
            show_default=False,
            err=True,
        )
        return answer.strip().lower() in ("yes", "y")

    return confirm


def _report_resolution(resolution: TrustResolution, store: HostTrustStore) -> None:
    if not resolution.newly_trusted:
        typer.echo(f"Host {resolution.entry.host_name} is trusted ({resolution.entry.fingerprint_text}).")
        return
    if resolution.persisted:
        typer.echo(
            f"Permanently added host {resolution.entry.host_name} to known_hosts file {store.path}",
            err=True,
        )
    else:
        typer.echo(f"Failed to add entry to known_hosts file: {resolution.error}", err=True)


def _verify_pending(op: OperationContext, pending: PendingIdentity, *, assume_yes: bool) -> None:
    store = HostTrustStore.from_context(op)
    with _handled():
        resolution = resolve_identity(store, pending, confirm=_confirm_identity(assume_yes))
    _report_resolution(resolution, store)


@known_hosts_app.command("list")
def known_hosts_list(ctx: typer.Context) -> None:
    """List trusted hosts."""

    store = HostTrustStore.from_context(_op(ctx))
    with _handled():
        entries = store.entries()
    _console.print(build_known_hosts_table(entries, path=store.path))


@known_hosts_app.command("verify")
def known_hosts_verify(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host name or address of the controller."),
    algorithm: str = typer.Argument(..., help="Key algorithm (RSA, EC, ED25519...)."),
    fingerprint: str = typer.Argument(..., help="Fingerprint as AA:BB:.. or plain hex."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept an unknown host without prompting."),
) -> None:
    """Check an identity obtained out of band against the trust store."""

    try:
        pending = PendingIdentity(host_name=host, algorithm=algorithm, fingerprint=fingerprint)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _verify_pending(_op(ctx), pending, assume_yes=yes)


@known_hosts_app.command("probe")
def known_hosts_probe(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Controller host name or address."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Controller TLS port."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept an unknown host without prompting."),
) -> None:
    """Connect to a controller and verify the certificate it presents."""

    op = _op(ctx)
    try:
        pending = probe_peer_identity(
            host,
            port or op.settings.tls_port,
            timeout=op.settings.command_timeout_seconds,
        )
    except (OSError, ssl.SSLError, ValueError) as exc:
        print_error(_err_console, exc, colorized=sys.stderr.isatty())
        raise typer.Exit(1) from exc
    _verify_pending(op, pending, assume_yes=yes)


@known_hosts_app.command("remove")
def known_hosts_remove(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host whose entry should be removed."),
) -> None:
    """Remove a host entry (the explicit way to accept a changed key)."""

    store = HostTrustStore.from_context(_op(ctx))
    with _handled():
        removed = store.remove(host)
    if not removed:
        typer.echo(f"No entry for {host} in {store.path}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Removed {host} from {store.path}")


# ----------------------------------------------------------------------
# cert
# ----------------------------------------------------------------------


@cert_app.command("install")
def cert_install(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Host name or IP the certificate is issued for."),
) -> None:
    """Generate a self-signed server certificate and an empty known_hosts file."""

    op = _op(ctx)
    layout = op.layout
    store = HostTrustStore.from_context(op)
    typer.echo("Generating server self-signed certificate...")
    try:
        create_self_cert(cert_path=layout.tls_cert_file, key_path=layout.tls_key_file, host=host)
    except OSError as exc:
        print_error(_err_console, RexrayError(f"cert generation failed: {exc}"), colorized=sys.stderr.isatty())
        raise typer.Exit(1) from exc
    with _handled():
        store.ensure_exists()
    typer.echo(
        f"Created cert file {layout.tls_cert_file}, key {layout.tls_key_file}, "
        f"and known_hosts file {store.path}\n"
    )


def run() -> None:
    app()
