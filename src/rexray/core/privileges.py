"""Privilege check for operations that change host state."""

from __future__ import annotations

import os
from typing import Callable

from rexray.core.context import OperationContext
from rexray.core.errors import PermissionRequiredError


def check_op_perms(
    ctx: OperationContext,
    op: str,
    *,
    geteuid: Callable[[], int] | None = None,
) -> None:
    """Raise `PermissionRequiredError` unless running as root.

    `op` is the past participle used in the message ("installed",
    "stopped"...). Disabled with ``REXRAY_REQUIRE_ROOT=false``.
    """

    if not ctx.settings.require_root:
        ctx.child_logger("perms").debug("privilege check disabled for %s", op)
        return
    if (geteuid or os.geteuid)() != 0:
        raise PermissionRequiredError(f"{ctx.settings.bin_name} can only be {op} by root")
