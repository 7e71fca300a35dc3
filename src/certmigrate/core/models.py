"""
Data model shared by the export and import engines.

Records are read-only snapshots produced by a store enumeration. Batch
results are folded from per-item outcomes so that the continue-on-error
policy of the engines stays explicit.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from src.certmigrate.core.errors import ValidationError

_ONE_DAY = timedelta(days=1)


class StoreScope(Enum):
    """Which certificate collection an operation targets."""

    USER = "user"
    MACHINE = "machine"

    @property
    def requires_elevation(self) -> bool:
        """Machine-wide stores can only be touched with elevated privilege."""
        return self is StoreScope.MACHINE

    @property
    def label(self) -> str:
        """Name written to the audit log."""
        return "UserScoped" if self is StoreScope.USER else "MachineScoped"


class AuditStatus(Enum):
    """Outcome of one processed item."""

    SUCCESS = "Success"
    FAILED = "Failed"
    SKIPPED = "Skipped"


def compute_thumbprint(certificate: x509.Certificate) -> str:
    """Upper-case SHA-256 fingerprint of the DER encoding."""
    return certificate.fingerprint(hashes.SHA256()).hex().upper()


def format_serial(serial_number: int) -> str:
    """Render a serial number as upper-case hex with an even digit count."""
    digits = f"{serial_number:X}"
    if len(digits) % 2:
        digits = "0" + digits
    return digits


@dataclass(frozen=True)
class CertificateRecord:  # pylint: disable=too-many-instance-attributes
    """Normalized snapshot of one stored certificate."""

    subject: str
    issuer: str
    serial_number: str
    thumbprint: str
    not_before: datetime
    not_after: datetime
    has_private_key: bool
    friendly_name: str = ""

    def __post_init__(self):
        if not self.serial_number:
            raise ValueError("serial_number must contain at least one character")
        if self.not_after <= self.not_before:
            raise ValueError("not_after must be later than not_before")

    @classmethod
    def from_x509(
        cls,
        certificate: x509.Certificate,
        has_private_key: bool,
        friendly_name: str = "",
    ) -> "CertificateRecord":
        """Build a record from a parsed certificate."""
        return cls(
            subject=certificate.subject.rfc4514_string(),
            issuer=certificate.issuer.rfc4514_string(),
            serial_number=format_serial(certificate.serial_number),
            thumbprint=compute_thumbprint(certificate),
            not_before=certificate.not_valid_before_utc,
            not_after=certificate.not_valid_after_utc,
            has_private_key=has_private_key,
            friendly_name=friendly_name or "",
        )

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        """Whole days until expiry, recomputed on every call."""
        if now is None:
            now = datetime.now(timezone.utc)
        return round((self.not_after - now) / _ONE_DAY)


@dataclass(frozen=True)
class ExportFilterSpec:
    """Conjunctive export filters. Empty strings disable a filter."""

    min_days_remaining: int = 0
    subject_filter: str = ""
    issuer_filter: str = ""

    def __post_init__(self):
        if self.min_days_remaining < 0:
            raise ValidationError("min_days_remaining cannot be negative")


@dataclass(frozen=True)
class AuditLogEntry:  # pylint: disable=too-many-instance-attributes
    """One row of an export or import audit log."""

    timestamp: datetime
    scope: StoreScope
    identifier: str
    thumbprint: str
    subject: str
    status: AuditStatus
    detail: str = ""
    file_path: str = ""


@dataclass(frozen=True)
class ItemOutcome:
    """Tagged result of processing one certificate or container file."""

    status: AuditStatus
    detail: str = ""

    @classmethod
    def ok(cls, detail: str = "") -> "ItemOutcome":
        """Successful outcome."""
        return cls(AuditStatus.SUCCESS, detail)

    @classmethod
    def failed(cls, detail: str) -> "ItemOutcome":
        """Failed outcome carrying a human-readable reason."""
        return cls(AuditStatus.FAILED, detail)

    @classmethod
    def skipped(cls, detail: str) -> "ItemOutcome":
        """Item deliberately not processed."""
        return cls(AuditStatus.SKIPPED, detail)


@dataclass(frozen=True)
class BatchResult:
    """Immutable tally folded over item outcomes."""

    successes: int = 0
    failures: int = 0
    skipped: int = 0

    def add(self, outcome: ItemOutcome) -> "BatchResult":
        """Return a new tally that includes ``outcome``."""
        if outcome.status is AuditStatus.SUCCESS:
            return dataclasses.replace(self, successes=self.successes + 1)
        if outcome.status is AuditStatus.FAILED:
            return dataclasses.replace(self, failures=self.failures + 1)
        return dataclasses.replace(self, skipped=self.skipped + 1)

    @property
    def processed(self) -> int:
        """Number of outcomes folded so far."""
        return self.successes + self.failures + self.skipped


@dataclass(frozen=True)
class PreviewItem:
    """One line of a dry-run report."""

    name: str
    thumbprint: str = ""
    subject: str = ""
    target: str = ""
    not_after: Optional[datetime] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class ExportSummary:
    """Counts produced by an export run."""

    exported: int
    failed: int
    filtered_out: int = 0
    log_path: Optional[str] = None
    preview: List[PreviewItem] = field(default_factory=list)


@dataclass(frozen=True)
class ImportSummary:
    """Counts produced by an import run."""

    imported: int
    skipped: int
    failed: int
    log_path: Optional[str] = None
    preview: List[PreviewItem] = field(default_factory=list)
