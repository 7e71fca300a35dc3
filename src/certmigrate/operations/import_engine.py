"""
Import of PFX files from a folder into a certificate store.

Two validation modes are supported:

``prevalidate`` (default)
    Every candidate file is decoded once before anything is written.
    Files that fail are recorded as Failed and dropped, so the store is
    only touched for containers known to open with the given password.

``direct``
    No separate validation pass. Each file is decoded and written in one
    step; when duplicates are being skipped, an entry the store reports
    as newly created for an already-present thumbprint is removed again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple

from src.certmigrate.core.errors import CertMigrateError, ReadError, ValidationError
from src.certmigrate.core.models import (
    AuditLogEntry,
    BatchResult,
    ImportSummary,
    ItemOutcome,
    PreviewItem,
    StoreScope,
)
from src.certmigrate.core.privilege import PrivilegeChecker
from src.certmigrate.operations.audit_log import IMPORT_HEADER, AuditLog
from src.certmigrate.operations.pfx_codec import PfxCodec
from src.i18n import _
from src.security.certificate_store import StoreProvider
from src.security.secret_password import SecretPassword, require_password, warn_if_weak

PREVALIDATE = "prevalidate"
DIRECT = "direct"

ProgressSink = Callable[[int, str], None]


class ImportEngine:  # pylint: disable=too-few-public-methods
    """Imports PFX containers into a store, skipping known duplicates on request."""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: StoreProvider,
        codec: Optional[PfxCodec] = None,
        privilege_checker: Optional[PrivilegeChecker] = None,
        extensions: Iterable[str] = (".pfx", ".p12"),
        mark_exportable: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.codec = codec or PfxCodec()
        self.privilege_checker = privilege_checker or PrivilegeChecker()
        self.extensions = {ext.lower() for ext in extensions}
        self.mark_exportable = mark_exportable
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def import_certificates(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        source: str,
        password: Optional[SecretPassword],
        skip_existing: bool = False,
        validation_mode: str = PREVALIDATE,
        preview: bool = False,
        progress: Optional[ProgressSink] = None,
    ) -> ImportSummary:
        """Run one import. The password is cleared before this returns."""
        try:
            return self._run(
                scope, source, password, skip_existing, validation_mode, preview, progress
            )
        finally:
            if password is not None:
                password.clear()

    def _run(  # pylint: disable=too-many-arguments,too-many-locals
        self,
        scope: StoreScope,
        source: str,
        password: Optional[SecretPassword],
        skip_existing: bool,
        validation_mode: str,
        preview: bool,
        progress: Optional[ProgressSink],
    ) -> ImportSummary:
        if validation_mode not in (PREVALIDATE, DIRECT):
            raise ValidationError(_("Unknown validation mode: %s") % validation_mode)

        self.privilege_checker.require(scope)
        if not preview:
            require_password(password)
            warn_if_weak(password, self.logger)

        folder = Path(source).expanduser().resolve()
        candidates = self._find_candidates(folder)
        if not candidates:
            self.logger.warning(_("No PFX files found in %s"), folder)
            return ImportSummary(imported=0, skipped=0, failed=0)

        if preview:
            return ImportSummary(
                imported=0,
                skipped=0,
                failed=0,
                preview=[self._preview_item(path, scope) for path in candidates],
            )

        existing = self._existing_thumbprints(scope) if skip_existing else set()
        audit_log = AuditLog.create(folder, "import", IMPORT_HEADER, now=self.clock())
        result = BatchResult()

        if validation_mode == PREVALIDATE:
            candidates, result = self._prevalidate(scope, candidates, password, audit_log, result)

        for index, path in enumerate(candidates, start=1):
            outcome, thumbprint, subject = self._import_one(
                scope, path, password, skip_existing, existing, validation_mode
            )
            audit_log.append(
                AuditLogEntry(
                    timestamp=self.clock(),
                    scope=scope,
                    identifier=path.name,
                    thumbprint=thumbprint,
                    subject=subject,
                    status=outcome.status,
                    detail=outcome.detail,
                )
            )
            result = result.add(outcome)
            if progress is not None:
                progress(index * 100 // len(candidates), path.name)

        self.logger.info(
            "Import finished: %d imported, %d skipped, %d failed, log %s",
            result.successes,
            result.skipped,
            result.failures,
            audit_log.path,
        )
        return ImportSummary(
            imported=result.successes,
            skipped=result.skipped,
            failed=result.failures,
            log_path=str(audit_log.path),
        )

    def _find_candidates(self, folder: Path) -> List[Path]:
        if not folder.is_dir():
            raise ReadError(_("Source folder does not exist: %s") % folder)
        try:
            return sorted(
                (
                    path
                    for path in folder.iterdir()
                    if path.is_file() and path.suffix.lower() in self.extensions
                ),
                key=lambda path: path.name.lower(),
            )
        except OSError as error:
            raise ReadError(
                _("Cannot enumerate source folder %s: %s") % (folder, error)
            ) from error

    def _existing_thumbprints(self, scope: StoreScope) -> Set[str]:
        try:
            return set(self.store.thumbprints(scope))
        except ReadError:
            raise
        except OSError as error:
            raise ReadError(
                _("Cannot read the %s store: %s") % (scope.label, error)
            ) from error

    @staticmethod
    def _preview_item(path: Path, scope: StoreScope) -> PreviewItem:
        try:
            size = path.stat().st_size
        except OSError:
            size = None
        return PreviewItem(name=path.name, target=scope.label, size=size)

    def _prevalidate(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        candidates: List[Path],
        password: SecretPassword,
        audit_log: AuditLog,
        result: BatchResult,
    ) -> Tuple[List[Path], BatchResult]:
        valid = []
        for path in candidates:
            try:
                self.codec.decode(path.read_bytes(), password)
            except (CertMigrateError, OSError) as error:
                self.logger.warning(_("Rejected %s during validation: %s"), path.name, error)
                outcome = ItemOutcome.failed(f"Validation failed: {error}")
                audit_log.append(
                    AuditLogEntry(
                        timestamp=self.clock(),
                        scope=scope,
                        identifier=path.name,
                        thumbprint="",
                        subject="",
                        status=outcome.status,
                        detail=outcome.detail,
                    )
                )
                result = result.add(outcome)
                continue
            valid.append(path)

        self.logger.info(
            "%d of %d PFX file(s) passed validation", len(valid), len(candidates)
        )
        return valid, result

    def _import_one(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        path: Path,
        password: SecretPassword,
        skip_existing: bool,
        existing: Set[str],
        validation_mode: str,
    ) -> Tuple[ItemOutcome, str, str]:
        """Decode and store one file. Never raises."""
        thumbprint = ""
        subject = ""
        try:
            decoded = self.codec.decode(path.read_bytes(), password)
            thumbprint = decoded.thumbprint
            subject = decoded.subject
            duplicate = skip_existing and thumbprint in existing

            if duplicate and validation_mode == PREVALIDATE:
                self.logger.info(_("Skipping %s: certificate already present"), path.name)
                return ItemOutcome.skipped("Certificate already present in target store"), thumbprint, subject

            created = self.store.add_certificate(
                scope,
                decoded.certificate,
                decoded.private_key,
                friendly_name=decoded.friendly_name,
                exportable=self.mark_exportable,
            )

            if duplicate:
                if created:
                    self.store.remove_certificate(scope, thumbprint)
                    return ItemOutcome.skipped("Duplicate entry rolled back"), thumbprint, subject
                return ItemOutcome.skipped("Certificate already present in target store"), thumbprint, subject

            existing.add(thumbprint)
        except (CertMigrateError, OSError) as error:
            self.logger.error(_("Import of %s failed: %s"), path.name, error)
            return ItemOutcome.failed(f"{type(error).__name__}: {error}"), thumbprint, subject
        except Exception as error:  # pylint: disable=broad-exception-caught
            self.logger.exception(_("Unexpected error importing %s"), path.name)
            return ItemOutcome.failed(f"{type(error).__name__}: {error}"), thumbprint, subject

        return ItemOutcome.ok("" if created else "already present"), thumbprint, subject
