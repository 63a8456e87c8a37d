"""CLI UI components (Rich).

Why separate components:
- Keeps command logic free of presentation details.
- The error block and the host key warning are shared by several commands.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rexray.core.domain.models import InitSystemKind, InstallResult, TrustedHostEntry, UninstallResult
from rexray.core.paths import PathLayout

PROJECT_URL = "https://github.com/codedellemc/rexray"

HOST_KEY_CHECK_FAILED_FORMAT = """\
@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@
@ WARNING: REMOTE HOST IDENTIFICATION HAS CHANGED! @
@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@
IT IS POSSIBLE THAT SOMEONE IS DOING SOMETHING NASTY!
Someone could be eavesdropping on you right now (man-in-the-middle attack)!
It is also possible that the {alg} host key has just been changed.
The fingerprint for the {alg} key sent by the remote host is
{fingerprint}.
Please contact your system administrator.
Add correct host key in {path} to get rid of this message.
Offending key in {path}
{alg} host key for {host} has changed and you have requested strict checking.
Host key verification failed.
"""


def format_host_key_warning(*, host: str, alg: str, fingerprint: str, path: Path) -> str:
    return HOST_KEY_CHECK_FAILED_FORMAT.format(host=host, alg=alg, fingerprint=fingerprint, path=path)


def print_host_key_warning(*, host: str, alg: str, fingerprint: str, path: Path) -> None:
    """Print the identity-change block verbatim to stderr (no markup)."""

    typer.echo(format_host_key_warning(host=host, alg=alg, fingerprint=fingerprint, path=path), err=True, nl=False)


def trust_prompt_text(*, host: str, alg: str, fingerprint: str) -> str:
    return (
        f"The authenticity of host '{host}' can't be established.\n"
        f"{alg} key fingerprint is {fingerprint}.\n"
        "Are you sure you want to continue connecting (yes/no)?"
    )


def print_error(console: Console, error: BaseException, *, colorized: bool) -> None:
    """Error block with pointers to debug output and the project site."""

    if colorized:
        body = Text()
        body.append(f"{error}\n\n", style="bold red")
        body.append("To correct the error please review:\n\n")
        body.append("  - Debug output by using the flag ")
        body.append("-l debug\n", style="bright_blue")
        body.append("  - The REX-Ray website at ")
        body.append(PROJECT_URL, style="underline blue")
        body.append("\n  - The online help (--help)")
        console.print(Panel(body, title=Text("Oops, an error occurred!", style="bold white on red"), border_style="red"))
        return

    console.print("Oops, an error occurred!\n", markup=False, highlight=False)
    console.print(f"  {error}", markup=False, highlight=False)
    console.print("To correct the error please review:\n", markup=False, highlight=False)
    console.print('  - Debug output by using the flag "-l debug"', markup=False, highlight=False)
    console.print(f"  - The REX-Ray website at {PROJECT_URL}", markup=False, highlight=False)
    console.print("  - The online help (--help)", markup=False, highlight=False)


def build_known_hosts_table(entries: list[TrustedHostEntry], *, path: Path) -> Table:
    table = Table(title=f"Known hosts ({path})")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Algorithm", style="white")
    table.add_column("Fingerprint", style="magenta")
    for entry in entries:
        table.add_row(entry.host_name, entry.algorithm, entry.fingerprint_text)
    return table


def print_install_notice(console: Console, result: InstallResult, layout: PathLayout) -> None:
    if result.init_system is InitSystemKind.SYSTEMD:
        start_cmd = f"sudo systemctl start {layout.bin_name}"
    else:
        start_cmd = f"sudo {layout.init_file_path} start"
    console.print(
        f"REX-Ray is now installed. Before starting it please check {PROJECT_URL} "
        "for instructions on how to configure it.\n\n"
        f"Once configured the REX-Ray service can be started with the command '{start_cmd}'.\n",
        markup=False,
        highlight=False,
    )


def print_uninstall_summary(console: Console, result: UninstallResult) -> None:
    if result.delegated:
        console.print(
            f"Removed by {result.ownership.manager.value} package {result.ownership.package_name}.",
            markup=False,
        )
    else:
        for path in result.removed:
            console.print(f"removed {path}", markup=False, style="dim")
        console.print("REX-Ray service uninstalled.", markup=False)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")
