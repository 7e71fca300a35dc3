"""
Export of store certificates into password-protected PFX files.

Setup failures (privilege, password, destination folder, store access)
abort the run before any audit row is written. Once the per-certificate
loop starts, every failure is recorded and the loop moves on.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Tuple

from src.certmigrate.core.errors import (
    CertMigrateError,
    ReadError,
    WriteError,
)
from src.certmigrate.core.models import (
    AuditLogEntry,
    BatchResult,
    CertificateRecord,
    ExportFilterSpec,
    ExportSummary,
    ItemOutcome,
    PreviewItem,
    StoreScope,
)
from src.certmigrate.core.privilege import PrivilegeChecker
from src.certmigrate.operations.audit_log import EXPORT_HEADER, AuditLog
from src.certmigrate.operations.filter_engine import FilterEngine
from src.certmigrate.operations.name_generator import NameGenerator
from src.certmigrate.operations.pfx_codec import PfxCodec
from src.i18n import _
from src.security.certificate_store import StoreProvider
from src.security.secret_password import SecretPassword, require_password, warn_if_weak

ProgressSink = Callable[[int, str], None]


class ExportEngine:  # pylint: disable=too-few-public-methods
    """Exports certificates with private keys from a store to a folder."""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        store: StoreProvider,
        codec: Optional[PfxCodec] = None,
        privilege_checker: Optional[PrivilegeChecker] = None,
        filter_engine: Optional[FilterEngine] = None,
        name_generator: Optional[NameGenerator] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.codec = codec or PfxCodec()
        self.privilege_checker = privilege_checker or PrivilegeChecker()
        self.filter_engine = filter_engine or FilterEngine()
        self.name_generator = name_generator or NameGenerator()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def export(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        destination: str,
        password: Optional[SecretPassword],
        filter_spec: Optional[ExportFilterSpec] = None,
        preview: bool = False,
        progress: Optional[ProgressSink] = None,
    ) -> ExportSummary:
        """Run one export. The password is cleared before this returns."""
        try:
            return self._run(scope, destination, password, filter_spec, preview, progress)
        finally:
            if password is not None:
                password.clear()

    def _run(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        destination: str,
        password: Optional[SecretPassword],
        filter_spec: Optional[ExportFilterSpec],
        preview: bool,
        progress: Optional[ProgressSink],
    ) -> ExportSummary:
        self.privilege_checker.require(scope)
        if not preview:
            require_password(password)
            warn_if_weak(password, self.logger)

        folder = Path(destination).expanduser().resolve()
        if not preview:
            self._prepare_folder(folder)

        records = self._enumerate(scope)
        selected = self.filter_engine.apply(
            records, filter_spec or ExportFilterSpec(), now=self.clock()
        )
        filtered_out = len(records) - len(selected)

        if not selected:
            self.logger.warning(
                _("No certificates in the %s store matched the export filters"),
                scope.label,
            )
            return ExportSummary(exported=0, failed=0, filtered_out=filtered_out)

        if preview:
            return ExportSummary(
                exported=0,
                failed=0,
                filtered_out=filtered_out,
                preview=self._preview(selected, folder),
            )

        audit_log = AuditLog.create(folder, "export", EXPORT_HEADER, now=self.clock())
        self.logger.info(
            "Exporting %d certificate(s) from %s store to %s",
            len(selected),
            scope.label,
            folder,
        )

        result = BatchResult()
        for record in selected:
            outcome, target = self._export_one(scope, record, folder, password)
            audit_log.append(self._audit_entry(scope, record, target, outcome))
            result = result.add(outcome)
            if progress is not None:
                progress(result.processed * 100 // len(selected), record.subject)

        self.logger.info(
            "Export finished: %d exported, %d failed, log %s",
            result.successes,
            result.failures,
            audit_log.path,
        )
        return ExportSummary(
            exported=result.successes,
            failed=result.failures,
            filtered_out=filtered_out,
            log_path=str(audit_log.path),
        )

    def _prepare_folder(self, folder: Path) -> None:
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise WriteError(
                _("Cannot create destination folder %s: %s") % (folder, error)
            ) from error
        if not os.access(folder, os.W_OK):
            raise WriteError(_("No write permission to destination folder: %s") % folder)

    def _enumerate(self, scope: StoreScope):
        try:
            return self.store.list_certificates(scope)
        except ReadError:
            raise
        except OSError as error:
            raise ReadError(
                _("Cannot read the %s store: %s") % (scope.label, error)
            ) from error

    def _preview(self, records, folder: Path):
        reserved = set()
        items = []
        for record in records:
            target = self.name_generator.resolve_path(record, folder, reserved)
            reserved.add(target.name)
            items.append(
                PreviewItem(
                    name=record.friendly_name or target.stem,
                    thumbprint=record.thumbprint,
                    subject=record.subject,
                    target=str(target),
                    not_after=record.not_after,
                )
            )
        return items

    def _export_one(
        self,
        scope: StoreScope,
        record: CertificateRecord,
        folder: Path,
        password: SecretPassword,
    ) -> Tuple[ItemOutcome, Optional[Path]]:
        """Encode and write one certificate. Never raises."""
        target = None
        try:
            target = self.name_generator.resolve_path(record, folder)
            material = self.store.export_key_material(scope, record.thumbprint)
            data = self.codec.encode(
                material.certificate,
                material.private_key,
                password,
                friendly_name=material.friendly_name or record.friendly_name,
            )
            self._write(target, data)
        except CertMigrateError as error:
            self.logger.error(_("Export of %s failed: %s"), record.thumbprint, error)
            return ItemOutcome.failed(f"{type(error).__name__}: {error}"), target
        except Exception as error:  # pylint: disable=broad-exception-caught
            self.logger.exception(_("Unexpected error exporting %s"), record.thumbprint)
            return ItemOutcome.failed(f"{type(error).__name__}: {error}"), target

        self.logger.debug("Wrote %s", target)
        return ItemOutcome.ok(), target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        try:
            # Exclusive create: an existing file is never overwritten
            with open(target, "xb") as handle:
                handle.write(data)
            written = target.stat().st_size
        except OSError as error:
            raise WriteError(_("Cannot write %s: %s") % (target, error)) from error

        if written == 0:
            raise WriteError(_("Written file %s is empty") % target)

    def _audit_entry(
        self,
        scope: StoreScope,
        record: CertificateRecord,
        target: Optional[Path],
        outcome: ItemOutcome,
    ) -> AuditLogEntry:
        container = record.friendly_name or (
            target.stem if target else self.name_generator.base_name(record)
        )
        return AuditLogEntry(
            timestamp=self.clock(),
            scope=scope,
            identifier=container,
            thumbprint=record.thumbprint,
            subject=record.subject,
            status=outcome.status,
            detail=outcome.detail,
            file_path=str(target) if target else "",
        )
