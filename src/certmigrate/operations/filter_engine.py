"""
Certificate filtering for export and listing.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from src.certmigrate.core.models import CertificateRecord, ExportFilterSpec


def _contains(haystack: str, needle: str) -> bool:
    # Empty filter means no filter
    if not needle:
        return True
    return needle.casefold() in (haystack or "").casefold()


class FilterEngine:
    """Applies the conjunctive expiry, subject and issuer filters."""

    def apply(
        self,
        records: Iterable[CertificateRecord],
        spec: ExportFilterSpec,
        now: Optional[datetime] = None,
    ) -> List[CertificateRecord]:
        """Return the records that satisfy every predicate in ``spec``, in order."""
        if now is None:
            now = datetime.now(timezone.utc)
        threshold = now + timedelta(days=spec.min_days_remaining)

        remaining = [record for record in records if record.not_after > threshold]
        if not remaining:
            return []

        remaining = [r for r in remaining if _contains(r.subject, spec.subject_filter)]
        return [r for r in remaining if _contains(r.issuer, spec.issuer_filter)]
