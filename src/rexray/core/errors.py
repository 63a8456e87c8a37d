"""Error taxonomy.

Every error the services raise derives from `RexrayError` and carries the
process exit code the CLI should use. The services never exit the process.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from rexray.core.domain.models import PendingIdentity, TrustedHostEntry


class RexrayError(Exception):
    exit_code: int = 1


class TrustConflictError(RexrayError):
    """The presented fingerprint differs from the stored one."""

    def __init__(
        self,
        *,
        pending: "PendingIdentity",
        stored: "TrustedHostEntry",
        store_path: Path,
    ) -> None:
        self.pending = pending
        self.stored = stored
        self.store_path = store_path
        super().__init__(
            f"host key for {pending.host_name} has changed "
            f"(stored {stored.fingerprint_text}, presented {pending.fingerprint_text})"
        )


class TrustRefusedError(RexrayError):
    """The operator declined to trust a first-contact host."""

    def __init__(self, pending: "PendingIdentity") -> None:
        self.pending = pending
        super().__init__(f"remote host {pending.host_name} not trusted")


class KnownHostsFormatError(RexrayError):
    """The trust store exists but cannot be parsed."""

    def __init__(self, path: Path, line_no: int, reason: str) -> None:
        self.path = path
        self.line_no = line_no
        super().__init__(f"malformed known_hosts file {path}, line {line_no}: {reason}")


class PersistenceError(RexrayError):
    """A trust store write failed."""


class UnsupportedInitSystemError(RexrayError):
    """No supported init system was found on this host."""


class RegistrationCommandError(RexrayError):
    """An init system registration command failed."""

    def __init__(self, args: Sequence[str], returncode: int | None, output: str = "") -> None:
        self.args_ = list(args)
        self.returncode = returncode
        self.output = output
        detail = "timed out" if returncode is None else f"exit status {returncode}"
        super().__init__(f"installation error: {' '.join(self.args_)} ({detail})")


class OwnershipQueryError(RexrayError):
    """A package database query failed; callers treat it as "unmanaged"."""


class FilesystemError(RexrayError):
    """A filesystem operation failed."""


class PermissionRequiredError(RexrayError):
    """The operation needs elevated privileges."""


class OperationCancelled(RexrayError):
    """The operation context was cancelled before an external command ran."""

    exit_code = 130
