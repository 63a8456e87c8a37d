"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation at the edge: a pending identity with an empty host name
  or fingerprint never reaches the trust store.
- The same models are used for the persisted known-hosts entries and the
  service installer results, so the CLI renders one vocabulary.

Note:
- These models describe *what* the data is, not *how* it is obtained.
"""

from __future__ import annotations

import binascii
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict


def format_fingerprint(fingerprint: bytes) -> str:
    """Render a fingerprint as colon separated upper-case hex (``AA:BB:..``)."""

    return ":".join(f"{b:02X}" for b in fingerprint)


def parse_fingerprint(text: str) -> bytes:
    """Parse ``AA:BB``, ``aa:bb`` or plain ``aabb`` hex into raw bytes.

    Raises `ValueError` for anything that is not an even-length hex string.
    """

    cleaned = text.strip().replace(":", "")
    if not cleaned:
        raise ValueError("empty fingerprint")
    try:
        return binascii.unhexlify(cleaned)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid fingerprint {text!r}") from exc


class _Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    host_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Host name or IP address the client connected to.",
    )
    algorithm: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Public key algorithm of the peer certificate (RSA, EC, ED25519...).",
    )
    fingerprint: bytes = Field(
        ...,
        min_length=1,
        description="Digest of the peer certificate.",
    )

    @field_validator("host_name", "algorithm")
    @classmethod
    def _no_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value or any(ch.isspace() for ch in value):
            raise ValueError("must be a single non-empty token")
        return value

    @field_validator("fingerprint", mode="before")
    @classmethod
    def _coerce_fingerprint(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_fingerprint(value)
        return value

    @property
    def host_key(self) -> str:
        """Lookup key: host names compare case-insensitively."""

        return self.host_name.lower()

    @property
    def fingerprint_text(self) -> str:
        return format_fingerprint(self.fingerprint)

    def matches(self, other: "_Identity") -> bool:
        return self.fingerprint == other.fingerprint


class TrustedHostEntry(_Identity):
    """A host identity the operator has accepted.

    At most one entry exists per host name; entries are never silently
    replaced.
    """


class PendingIdentity(_Identity):
    """Identity presented by a peer during a connection attempt (not persisted)."""

    def to_entry(self) -> TrustedHostEntry:
        return TrustedHostEntry(
            host_name=self.host_name,
            algorithm=self.algorithm,
            fingerprint=self.fingerprint,
        )


class VerifyStatus(str, Enum):
    TRUSTED = "trusted"
    CONFIRMED = "confirmed"
    CONFLICT = "conflict"


class VerifyOutcome(BaseModel):
    """Result of checking a pending identity against the store.

    - TRUSTED: first contact, the operator must accept before it is stored.
    - CONFIRMED: stored fingerprint matches.
    - CONFLICT: stored fingerprint differs; `stored` holds the existing entry.
    """

    status: VerifyStatus
    pending: PendingIdentity
    stored: TrustedHostEntry | None = None


class InitSystemKind(str, Enum):
    """Init system families, in detection priority order."""

    UNKNOWN = "unknown"
    SYSTEMD = "systemd"
    UPDATE_RC_D = "update-rc.d"
    CHKCONFIG = "chkconfig"

    @property
    def probe_executable(self) -> str | None:
        """Control executable whose presence on PATH identifies the family."""

        return _PROBES.get(self)

    @property
    def uses_init_script(self) -> bool:
        return self in (InitSystemKind.UPDATE_RC_D, InitSystemKind.CHKCONFIG)


_PROBES: dict[InitSystemKind, str] = {
    InitSystemKind.SYSTEMD: "systemctl",
    InitSystemKind.UPDATE_RC_D: "update-rc.d",
    InitSystemKind.CHKCONFIG: "chkconfig",
}

DETECTION_ORDER: tuple[InitSystemKind, ...] = (
    InitSystemKind.SYSTEMD,
    InitSystemKind.UPDATE_RC_D,
    InitSystemKind.CHKCONFIG,
)


class PackageManager(str, Enum):
    UNMANAGED = "unmanaged"
    RPM = "rpm"
    DEB = "deb"


class InstallationOwnership(BaseModel):
    """Who owns the installed binary: nobody, an RPM or a DEB package."""

    model_config = ConfigDict(frozen=True)

    manager: PackageManager = PackageManager.UNMANAGED
    package_name: str | None = Field(
        default=None,
        description="Owning package as reported by the package database.",
    )

    @property
    def is_managed(self) -> bool:
        return self.manager is not PackageManager.UNMANAGED

    @classmethod
    def unmanaged(cls) -> "InstallationOwnership":
        return cls()


class ServiceDescriptor(BaseModel):
    """A rendered unit file or init script, ready to be written."""

    kind: InitSystemKind
    path: Path
    content: str
    mode: int = Field(default=0o644, ge=0, le=0o7777)


class InstallResult(BaseModel):
    """What `ServiceInstaller.install` did."""

    init_system: InitSystemKind
    descriptor: ServiceDescriptor | None = None
    env_file: Path | None = None

    @property
    def performed(self) -> bool:
        return self.descriptor is not None


class UninstallResult(BaseModel):
    """What `ServiceInstaller.uninstall` did."""

    ownership: InstallationOwnership = Field(default_factory=InstallationOwnership.unmanaged)
    init_system: InitSystemKind | None = None
    removed: list[Path] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def delegated(self) -> bool:
        return self.ownership.is_managed
