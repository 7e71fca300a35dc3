"""
Per-run CSV audit logs.

The format is unquoted: commas inside free-text fields are
replaced with semicolons so columns stay aligned. The file is reopened for
every row, so a run that dies midway still leaves a readable log.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from src.certmigrate.core.errors import WriteError
from src.certmigrate.core.models import AuditLogEntry
from src.i18n import _

logger = logging.getLogger(__name__)

EXPORT_HEADER = (
    "Timestamp",
    "Scope",
    "ContainerName",
    "Thumbprint",
    "Subject",
    "FilePath",
    "Status",
    "Detail",
)
IMPORT_HEADER = (
    "Timestamp",
    "Scope",
    "FileName",
    "Thumbprint",
    "Subject",
    "Status",
    "Detail",
)


def clean_field(value: Optional[str]) -> str:
    """Make ``value`` safe for an unquoted CSV column."""
    if value is None:
        return ""
    text = str(value).replace(",", ";")
    return " ".join(text.splitlines())


class AuditLog:
    """Append-only audit trail of one export or import invocation."""

    def __init__(self, path: Path, header: Sequence[str]):
        self.path = Path(path)
        self.header = tuple(header)
        self.rows_written = 0

    @classmethod
    def create(
        cls,
        folder: Path,
        kind: str,
        header: Sequence[str],
        now: Optional[datetime] = None,
    ) -> "AuditLog":
        """Create ``<kind>_log_<timestamp>.csv`` in ``folder`` and write the header."""
        if now is None:
            now = datetime.now(timezone.utc)
        stem = f"{kind}_log_{now.strftime('%Y%m%d_%H%M%S')}"
        path = Path(folder) / f"{stem}.csv"
        counter = 1
        while path.exists():
            path = Path(folder) / f"{stem}_{counter}.csv"
            counter += 1

        audit_log = cls(path, header)
        audit_log._write_line(",".join(audit_log.header), mode="w")
        logger.debug("Audit log created at %s", path)
        return audit_log

    def _write_line(self, line: str, mode: str = "a") -> None:
        try:
            with open(self.path, mode, encoding="utf-8", newline="") as handle:
                handle.write(line + "\n")
        except OSError as error:
            raise WriteError(
                _("Cannot write audit log %s: %s") % (self.path, error)
            ) from error

    def format_row(self, entry: AuditLogEntry) -> str:
        """Render ``entry`` in the column order of this log's header."""
        values = {
            "Timestamp": entry.timestamp.astimezone(timezone.utc).isoformat(),
            "Scope": entry.scope.label,
            "ContainerName": entry.identifier,
            "FileName": entry.identifier,
            "Thumbprint": entry.thumbprint,
            "Subject": entry.subject,
            "FilePath": entry.file_path,
            "Status": entry.status.value,
            "Detail": entry.detail,
        }
        return ",".join(clean_field(values[column]) for column in self.header)

    def append(self, entry: AuditLogEntry) -> None:
        """Append one row."""
        self._write_line(self.format_row(entry))
        self.rows_written += 1
