"""Unit tests for the known_hosts trust store and the trust-on-first-use workflow."""
from __future__ import annotations

import threading
from pathlib import Path

import pytest

from rexray.adapters.file_lock import locked
from rexray.adapters.known_hosts_file import format_entry, parse_known_hosts
from rexray.core.domain.models import PendingIdentity, TrustedHostEntry, VerifyStatus
from rexray.core.errors import (
    KnownHostsFormatError,
    PersistenceError,
    TrustConflictError,
    TrustRefusedError,
)
from rexray.core.services.host_trust import HostTrustStore, resolve_identity


def pending(host: str = "10.0.0.5", fingerprint: str = "AA:BB", alg: str = "RSA") -> PendingIdentity:
    return PendingIdentity(host_name=host, algorithm=alg, fingerprint=fingerprint)


@pytest.fixture()
def store(known_hosts_path: Path) -> HostTrustStore:
    return HostTrustStore(known_hosts_path)


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


class TestVerify:
    def test_unknown_host_is_trusted_first_contact(self, store: HostTrustStore) -> None:
        outcome = store.verify(pending())
        assert outcome.status is VerifyStatus.TRUSTED
        assert outcome.stored is None

    def test_verify_does_not_create_the_store(self, store: HostTrustStore) -> None:
        store.verify(pending())
        assert not store.path.exists()

    def test_accepted_host_is_confirmed(self, store: HostTrustStore) -> None:
        store.add(pending().to_entry())
        outcome = store.verify(pending())
        assert outcome.status is VerifyStatus.CONFIRMED

    def test_host_lookup_ignores_case(self, store: HostTrustStore) -> None:
        store.add(pending(host="Controller.Local").to_entry())
        assert store.verify(pending(host="controller.local")).status is VerifyStatus.CONFIRMED

    def test_changed_fingerprint_is_a_conflict(self, store: HostTrustStore) -> None:
        store.add(pending(fingerprint="AA:BB").to_entry())
        before = store.path.read_bytes()

        outcome = store.verify(pending(fingerprint="CC:DD"))

        assert outcome.status is VerifyStatus.CONFLICT
        assert outcome.stored is not None
        assert outcome.stored.fingerprint == b"\xaa\xbb"
        assert store.path.read_bytes() == before

    def test_malformed_store_is_fatal(self, store: HostTrustStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("10.0.0.5 RSA\n", encoding="utf-8")
        with pytest.raises(KnownHostsFormatError) as info:
            store.verify(pending())
        assert info.value.line_no == 1
        assert info.value.exit_code == 1

    def test_undecodable_store_names_the_line(self, store: HostTrustStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b"ok RSA 01\n\xff\xfe RSA 02\n")
        with pytest.raises(KnownHostsFormatError) as info:
            store.verify(pending())
        assert info.value.line_no == 2

    def test_directory_at_store_path_is_a_persistence_error(self, store: HostTrustStore) -> None:
        store.path.mkdir(parents=True)
        with pytest.raises(PersistenceError):
            store.verify(pending())
        with pytest.raises(PersistenceError):
            store.remove("10.0.0.5")
        with pytest.raises(PersistenceError):
            store.add(pending().to_entry())


# ---------------------------------------------------------------------------
# persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_round_trip_through_a_new_store(self, store: HostTrustStore) -> None:
        entry = TrustedHostEntry(host_name="ctl.example", algorithm="ED25519", fingerprint=bytes(range(32)))
        store.add(entry)

        reloaded = HostTrustStore(store.path).get("ctl.example")

        assert reloaded is not None
        assert reloaded.host_name == entry.host_name
        assert reloaded.algorithm == entry.algorithm
        assert reloaded.fingerprint == entry.fingerprint

    def test_add_creates_parent_directories(self, store: HostTrustStore) -> None:
        assert not store.path.parent.exists()
        store.add(pending().to_entry())
        assert store.path.read_text(encoding="utf-8") == "10.0.0.5 RSA AA:BB\n"

    def test_adding_the_same_entry_twice_keeps_one_line(self, store: HostTrustStore) -> None:
        store.add(pending().to_entry())
        store.add(pending().to_entry())
        assert len(store.path.read_text(encoding="utf-8").splitlines()) == 1

    def test_add_never_overwrites_a_different_fingerprint(self, store: HostTrustStore) -> None:
        store.add(pending(fingerprint="AA:BB").to_entry())
        with pytest.raises(TrustConflictError):
            store.add(pending(fingerprint="CC:DD").to_entry())
        assert store.get("10.0.0.5").fingerprint == b"\xaa\xbb"  # type: ignore[union-attr]

    def test_append_after_file_without_trailing_newline(self, store: HostTrustStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("a RSA 01", encoding="utf-8")
        store.add(pending().to_entry())
        assert [e.host_name for e in store.entries()] == ["a", "10.0.0.5"]

    def test_remove(self, store: HostTrustStore) -> None:
        store.add(pending(host="a").to_entry())
        store.add(pending(host="b").to_entry())

        assert store.remove("A") is True
        assert store.remove("a") is False
        assert [e.host_name for e in store.entries()] == ["b"]

    def test_ensure_exists(self, store: HostTrustStore) -> None:
        assert store.ensure_exists() is True
        assert store.path.read_text(encoding="utf-8") == ""
        assert store.ensure_exists() is False

    def test_add_waits_for_a_concurrent_writer(self, store: HostTrustStore) -> None:
        lock_path = store.path.with_name(store.path.name + ".lock")
        worker = threading.Thread(target=store.add, args=(pending().to_entry(),))

        with locked(lock_path):
            worker.start()
            worker.join(timeout=0.3)
            assert worker.is_alive()
            assert not store.path.exists()

        worker.join(timeout=5)
        assert not worker.is_alive()
        assert store.path.read_text(encoding="utf-8") == "10.0.0.5 RSA AA:BB\n"


class TestCodec:
    def test_comments_blank_lines_and_plain_hex(self) -> None:
        text = "# trusted controllers\n\nctl RSA aabb\n  other EC 01:02  \n"
        entries = parse_known_hosts(text, path=Path("kh"))
        assert [(e.host_name, e.fingerprint) for e in entries] == [("ctl", b"\xaa\xbb"), ("other", b"\x01\x02")]

    def test_bad_fingerprint_names_the_line(self) -> None:
        with pytest.raises(KnownHostsFormatError) as info:
            parse_known_hosts("ok RSA 01\nbad RSA zz\n", path=Path("kh"))
        assert info.value.line_no == 2

    def test_duplicate_hosts_are_rejected(self) -> None:
        with pytest.raises(KnownHostsFormatError):
            parse_known_hosts("a RSA 01\nA RSA 02\n", path=Path("kh"))

    def test_format_entry(self) -> None:
        entry = TrustedHostEntry(host_name="h", algorithm="RSA", fingerprint=b"\x0a\xff")
        assert format_entry(entry) == "h RSA 0A:FF\n"


# ---------------------------------------------------------------------------
# resolve_identity workflow
# ---------------------------------------------------------------------------


class TestResolveIdentity:
    def test_first_contact_accepted_is_persisted(self, store: HostTrustStore) -> None:
        asked: list[PendingIdentity] = []

        def confirm(p: PendingIdentity) -> bool:
            asked.append(p)
            return True

        resolution = resolve_identity(store, pending(), confirm=confirm)

        assert len(asked) == 1
        assert resolution.newly_trusted
        assert resolution.persisted
        assert store.verify(pending()).status is VerifyStatus.CONFIRMED

    def test_first_contact_refused_raises_and_stores_nothing(self, store: HostTrustStore) -> None:
        with pytest.raises(TrustRefusedError):
            resolve_identity(store, pending(), confirm=lambda p: False)
        assert store.entries() == []

    def test_confirmed_host_does_not_prompt(self, store: HostTrustStore) -> None:
        store.add(pending().to_entry())

        def confirm(p: PendingIdentity) -> bool:
            raise AssertionError("must not prompt for a known host")

        resolution = resolve_identity(store, pending(), confirm=confirm)
        assert resolution.status is VerifyStatus.CONFIRMED
        assert not resolution.newly_trusted

    def test_conflict_raises_without_prompting(self, store: HostTrustStore) -> None:
        store.add(pending(fingerprint="AA:BB").to_entry())

        def confirm(p: PendingIdentity) -> bool:
            raise AssertionError("a conflict is never offered for acceptance")

        with pytest.raises(TrustConflictError) as info:
            resolve_identity(store, pending(fingerprint="CC:DD"), confirm=confirm)

        assert info.value.pending.fingerprint_text == "CC:DD"
        assert info.value.stored.fingerprint_text == "AA:BB"
        assert info.value.store_path == store.path

    def test_write_failure_is_reported_not_raised(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        store = HostTrustStore(blocker / "known_hosts")

        resolution = resolve_identity(store, pending(), confirm=lambda p: True)

        assert resolution.newly_trusted
        assert not resolution.persisted
        assert resolution.error is not None
        assert store.verify(pending()).status is VerifyStatus.TRUSTED
