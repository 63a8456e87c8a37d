"""known_hosts file codec.

Format, one entry per line::

    <host> <algorithm> <fingerprint>

The fingerprint is written as colon separated upper-case hex; plain hex is
accepted on read. Blank lines and ``#`` comments are ignored. A missing file
is an empty store; any other unreadable line is a fatal format error.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from rexray.core.domain.models import TrustedHostEntry
from rexray.core.errors import KnownHostsFormatError, PersistenceError


def format_entry(entry: TrustedHostEntry) -> str:
    return f"{entry.host_name} {entry.algorithm} {entry.fingerprint_text}\n"


def parse_known_hosts(text: str, *, path: Path) -> list[TrustedHostEntry]:
    entries: list[TrustedHostEntry] = []
    seen: set[str] = set()
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        if len(fields) != 3:
            raise KnownHostsFormatError(path, line_no, f"expected 3 fields, got {len(fields)}")
        host, alg, fingerprint = fields
        try:
            entry = TrustedHostEntry(host_name=host, algorithm=alg, fingerprint=fingerprint)
        except ValidationError as exc:
            reason = exc.errors()[0].get("msg", "invalid entry") if exc.errors() else "invalid entry"
            raise KnownHostsFormatError(path, line_no, reason) from exc
        if entry.host_key in seen:
            raise KnownHostsFormatError(path, line_no, f"duplicate entry for host {host}")
        seen.add(entry.host_key)
        entries.append(entry)
    return entries


def read_known_hosts(path: Path) -> list[TrustedHostEntry]:
    """Parse the store at `path`.

    Undecodable content raises `KnownHostsFormatError` naming the line; a
    store that exists but cannot be read raises `PersistenceError`.
    """

    if not path.exists():
        return []
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise PersistenceError(f"cannot read known_hosts file {path}: {exc}") from exc
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        line_no = raw.count(b"\n", 0, exc.start) + 1
        raise KnownHostsFormatError(path, line_no, "not valid UTF-8") from exc
    return parse_known_hosts(text, path=path)


def append_entry(path: Path, entry: TrustedHostEntry) -> None:
    """Append one entry, creating the file and its parents when absent."""

    path.parent.mkdir(parents=True, exist_ok=True)
    prefix = ""
    if path.exists() and path.stat().st_size > 0:
        with open(path, "rb") as fh:
            fh.seek(-1, 2)
            if fh.read(1) != b"\n":
                prefix = "\n"
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(prefix + format_entry(entry))


def write_known_hosts(path: Path, entries: list[TrustedHostEntry]) -> None:
    """Rewrite the whole store (used when an entry is removed).

    Comments are not preserved.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as fh:
        for entry in entries:
            fh.write(format_entry(entry))
    tmp.replace(path)
