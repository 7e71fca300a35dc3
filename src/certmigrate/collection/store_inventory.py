"""
Read-only listing of a certificate store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.certmigrate.core.models import ExportFilterSpec, StoreScope
from src.certmigrate.operations.filter_engine import FilterEngine
from src.security.certificate_store import StoreProvider


class StoreInventory:
    """Lists certificates of a scope, soonest expiry first."""

    def __init__(self, store: StoreProvider, filter_engine: Optional[FilterEngine] = None):
        self.store = store
        self.filter_engine = filter_engine or FilterEngine()
        self.logger = logging.getLogger(__name__)

    def list(
        self,
        scope: StoreScope,
        filter_spec: Optional[ExportFilterSpec] = None,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Return one dictionary per matching certificate."""
        if now is None:
            now = datetime.now(timezone.utc)

        records = self.store.list_certificates(scope)
        if filter_spec is not None:
            records = self.filter_engine.apply(records, filter_spec, now=now)

        self.logger.debug("Listing %d certificate(s) from %s store", len(records), scope.value)
        return [
            {
                "subject": record.subject,
                "issuer": record.issuer,
                "serial_number": record.serial_number,
                "thumbprint": record.thumbprint,
                "not_after": record.not_after.isoformat(),
                "days_remaining": record.days_remaining(now),
                "has_private_key": record.has_private_key,
                "friendly_name": record.friendly_name,
            }
            for record in sorted(records, key=lambda record: record.not_after)
        ]
