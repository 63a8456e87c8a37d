"""Subprocess wrapper.

Why a wrapper:
- Standardizes the timeout, output capture and logging of every package
  manager and init system command.
- Checks the cancellation signal of the operation context before each
  command.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import Sequence

from rexray.core.context import OperationContext
from rexray.core.interfaces.runner import CommandResult


class SubprocessRunner:
    """`CommandRunner` backed by `subprocess.run` with a hard timeout."""

    def __init__(self, ctx: OperationContext) -> None:
        self._ctx = ctx
        self._log = ctx.child_logger("exec")
        self._timeout = ctx.settings.command_timeout_seconds

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def run(self, args: Sequence[str], *, passthrough: bool = False) -> CommandResult:
        self._ctx.check_cancelled()
        argv = tuple(str(a) for a in args)
        self._log.debug("running %s", " ".join(argv))
        try:
            proc = subprocess.run(  # noqa: S603 - argv is built by this package
                argv,
                stdout=None if passthrough else subprocess.PIPE,
                stderr=None if passthrough else subprocess.STDOUT,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            self._log.warning("%s timed out after %.0fs", argv[0], self._timeout)
            return CommandResult(args=argv, returncode=None, output="timeout")
        except FileNotFoundError as exc:
            self._log.debug("%s not found: %s", argv[0], exc)
            return CommandResult(args=argv, returncode=127, output=str(exc))
        except PermissionError as exc:
            self._log.warning("%s is not executable: %s", argv[0], exc)
            return CommandResult(args=argv, returncode=126, output=str(exc))
        except OSError as exc:
            self._log.warning("%s could not be started: %s", argv[0], exc)
            return CommandResult(args=argv, returncode=127, output=str(exc))

        output = proc.stdout or ""
        self._log.debug("%s exited %s output=%r", argv[0], proc.returncode, output.strip())
        return CommandResult(args=argv, returncode=proc.returncode, output=output)
