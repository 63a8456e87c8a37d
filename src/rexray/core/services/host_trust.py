"""Trust-on-first-use verification of remote host identities.

Modeled on SSH known_hosts:
- an unknown host is reported as TRUSTED and must be accepted by the
  operator before it is stored;
- a known host with the same fingerprint is CONFIRMED;
- a known host with a different fingerprint is a CONFLICT. Key rotation and
  a man-in-the-middle cannot be told apart, so a conflict is never resolved
  automatically: the stored entry stays untouched and the caller aborts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from rexray.adapters.file_lock import locked
from rexray.adapters.known_hosts_file import append_entry, read_known_hosts, write_known_hosts
from rexray.core.context import OperationContext
from rexray.core.domain.models import (
    PendingIdentity,
    TrustedHostEntry,
    VerifyOutcome,
    VerifyStatus,
)
from rexray.core.errors import PersistenceError, TrustConflictError, TrustRefusedError


class HostTrustStore:
    """File-backed registry of trusted host identities."""

    def __init__(self, path: Path, *, logger: logging.Logger | None = None) -> None:
        self._path = path
        self._lock_path = path.with_name(path.name + ".lock")
        self._log = logger or logging.getLogger("rexray.trust")

    @classmethod
    def from_context(cls, ctx: OperationContext) -> "HostTrustStore":
        return cls(ctx.layout.known_hosts_path, logger=ctx.child_logger("trust"))

    @property
    def path(self) -> Path:
        return self._path

    def entries(self) -> list[TrustedHostEntry]:
        """All stored entries. Raises `KnownHostsFormatError` on a malformed file."""

        return read_known_hosts(self._path)

    def get(self, host_name: str) -> TrustedHostEntry | None:
        key = host_name.strip().lower()
        for entry in self.entries():
            if entry.host_key == key:
                return entry
        return None

    def verify(self, pending: PendingIdentity) -> VerifyOutcome:
        stored = self.get(pending.host_name)
        if stored is None:
            self._log.debug("no known_hosts entry for %s", pending.host_name)
            return VerifyOutcome(status=VerifyStatus.TRUSTED, pending=pending)
        if stored.matches(pending):
            self._log.debug("known_hosts entry confirmed for %s", pending.host_name)
            return VerifyOutcome(status=VerifyStatus.CONFIRMED, pending=pending, stored=stored)
        self._log.warning(
            "fingerprint mismatch for %s: stored %s, presented %s",
            pending.host_name,
            stored.fingerprint_text,
            pending.fingerprint_text,
        )
        return VerifyOutcome(status=VerifyStatus.CONFLICT, pending=pending, stored=stored)

    def add(self, entry: TrustedHostEntry) -> None:
        """Persist an accepted entry.

        Adding an identical entry again is a no-op. Adding a different
        fingerprint for a stored host raises `TrustConflictError`; replacing
        an entry requires `remove` first.
        """

        try:
            with locked(self._lock_path):
                existing = {e.host_key: e for e in read_known_hosts(self._path)}
                stored = existing.get(entry.host_key)
                if stored is not None:
                    if stored.matches(entry):
                        return
                    raise TrustConflictError(
                        pending=PendingIdentity(**entry.model_dump()),
                        stored=stored,
                        store_path=self._path,
                    )
                append_entry(self._path, entry)
        except OSError as exc:
            raise PersistenceError(f"failed to add entry to known_hosts file {self._path}: {exc}") from exc
        self._log.info("added %s (%s) to %s", entry.host_name, entry.algorithm, self._path)

    def remove(self, host_name: str) -> bool:
        """Drop the entry for `host_name`; returns False when there was none."""

        key = host_name.strip().lower()
        try:
            with locked(self._lock_path):
                entries = read_known_hosts(self._path)
                kept = [e for e in entries if e.host_key != key]
                if len(kept) == len(entries):
                    return False
                write_known_hosts(self._path, kept)
        except OSError as exc:
            raise PersistenceError(f"failed to update known_hosts file {self._path}: {exc}") from exc
        self._log.info("removed %s from %s", host_name, self._path)
        return True

    def ensure_exists(self) -> bool:
        """Create an empty store (and parent dirs) if absent. True when created."""

        if self._path.exists():
            return False
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.touch(mode=0o644, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"failed to create known_hosts file {self._path}: {exc}") from exc
        return True


@dataclass
class TrustResolution:
    """Outcome of `resolve_identity` for an identity that may proceed."""

    status: VerifyStatus
    entry: TrustedHostEntry
    persisted: bool = False
    error: PersistenceError | None = None

    @property
    def newly_trusted(self) -> bool:
        return self.status is VerifyStatus.TRUSTED


ConfirmCallback = Callable[[PendingIdentity], bool]


def resolve_identity(
    store: HostTrustStore,
    pending: PendingIdentity,
    *,
    confirm: ConfirmCallback,
) -> TrustResolution:
    """Run the trust-on-first-use workflow for one connection attempt.

    - CONFIRMED: returns immediately.
    - CONFLICT: raises `TrustConflictError`; there is no retry path.
    - TRUSTED: asks `confirm`; a refusal raises `TrustRefusedError`. On
      acceptance the entry is persisted. A write failure does not raise: it is
      returned in `error` so the caller can report it while keeping the
      connection that already succeeded.
    """

    outcome = store.verify(pending)
    if outcome.status is VerifyStatus.CONFIRMED:
        assert outcome.stored is not None
        return TrustResolution(status=outcome.status, entry=outcome.stored)

    if outcome.status is VerifyStatus.CONFLICT:
        assert outcome.stored is not None
        raise TrustConflictError(pending=pending, stored=outcome.stored, store_path=store.path)

    if not confirm(pending):
        raise TrustRefusedError(pending)

    entry = pending.to_entry()
    try:
        store.add(entry)
    except PersistenceError as exc:
        return TrustResolution(status=outcome.status, entry=entry, persisted=False, error=exc)
    return TrustResolution(status=outcome.status, entry=entry, persisted=True)
