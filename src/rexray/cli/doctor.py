"""Doctor command for host diagnostics."""

from __future__ import annotations

import os

import typer
from rich.console import Console
from rich.table import Table

from rexray.adapters.process_runner import SubprocessRunner
from rexray.core.context import OperationContext
from rexray.core.errors import KnownHostsFormatError, PermissionRequiredError, PersistenceError
from rexray.core.privileges import check_op_perms
from rexray.core.services.host_trust import HostTrustStore
from rexray.core.services.service_installer import ServiceInstaller

app = typer.Typer(no_args_is_help=True, help="Host diagnostics and configuration checks.")

_console = Console()


def _check_known_hosts(store: HostTrustStore) -> tuple[str, str]:
    if not store.path.exists():
        return "MISSING", f"{store.path} (created on first accepted host)"
    try:
        entries = store.entries()
    except (KnownHostsFormatError, PersistenceError) as exc:
        return "FAIL", str(exc)
    return "OK", f"{store.path} ({len(entries)} entries)"


@app.command()
def run(ctx: typer.Context) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    op = ctx.find_object(OperationContext)
    if op is None:
        raise RuntimeError("operation context not initialized")
    layout = op.layout
    installer = ServiceInstaller(op, SubprocessRunner(op))

    table = Table(title="REX-Ray Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Init system
    if installer.is_linux:
        kind = installer.detect_init_system()
        status = "OK" if kind.probe_executable else "FAIL"
        table.add_row("Init system", status, kind.value)
    else:
        table.add_row("Init system", "UNSUPPORTED", "service install is Linux only")

    # Binary and ownership
    bin_path = layout.bin_file_path
    table.add_row("Binary", "OK" if bin_path.exists() else "MISSING", str(bin_path))
    ownership = installer.query_ownership()
    if ownership.is_managed:
        table.add_row("Ownership", "OK", f"{ownership.manager.value} package {ownership.package_name}")
    else:
        table.add_row("Ownership", "OK", "manual install (not owned by rpm/deb)")
    table.add_row("Prefix", "OK", str(layout.prefix) if layout.is_prefixed else "(none)")

    # Privileges
    try:
        check_op_perms(op, "installed")
        table.add_row("Privileges", "OK", f"euid={os.geteuid()}")
    except PermissionRequiredError as exc:
        table.add_row("Privileges", "FAIL", str(exc))

    # Trust store and TLS material
    status, detail = _check_known_hosts(HostTrustStore.from_context(op))
    table.add_row("Known hosts", status, detail)
    for label, path in (("TLS cert", layout.tls_cert_file), ("TLS key", layout.tls_key_file)):
        table.add_row(label, "OK" if path.exists() else "MISSING", str(path))

    _console.print(table)

    if not layout.tls_cert_file.exists():
        _console.print(
            "\n[yellow]Note:[/yellow] run `rexray cert install` to create a self-signed server certificate."
        )
