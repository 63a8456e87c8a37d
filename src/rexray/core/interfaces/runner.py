"""Contract for running host commands.

Why Protocol:
- The service installer only needs "is this executable on PATH?" and "run
  this argv and tell me how it went".
- Tests substitute a recording fake; production uses
  `rexray.adapters.process_runner.SubprocessRunner`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int | None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def timed_out(self) -> bool:
        return self.returncode is None


@runtime_checkable
class CommandRunner(Protocol):
    """Minimal contract to probe and run host executables.

    Design rules:
    - `run` never raises for a non-zero exit or a timeout; it reports them in
      the `CommandResult`. A missing executable is reported with
      returncode 127, one that cannot be executed with 126 (shell
      conventions). Only `OperationCancelled` escapes.
    - `passthrough=True` lets the command write straight to the terminal
      (registration commands), otherwise output is captured.
    """

    def which(self, name: str) -> str | None:
        ...

    def run(self, args: Sequence[str], *, passthrough: bool = False) -> CommandResult:
        ...
