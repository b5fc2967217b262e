"""
Owned-vehicle CSV import.

Entry point for one import run:

    raw CSV → parse → catalog index → reconcile → chunked commit
            → set expansion → report

Row-level problems never raise; they end up in the returned report.
Only input that cannot be parsed at all raises CSVParseError.
"""

import threading
import time
from typing import Optional
import structlog

from config import settings, Settings
from models.vehicle_import import ImportReport
from parsers.csv_parser import parse_owned_vehicle_csv
from services.batch_committer import BatchCommitter
from services.import_report import ImportReportBuilder
from services.reference_index import ReferenceIndex
from services.row_reconciler import reconcile_rows
from services.set_expansion_service import SetExpansionService
from services.vehicle_store import VehicleStore, get_vehicle_store
from exceptions import UserNotFoundError

logger = structlog.get_logger(__name__)


class VehicleImportService:
    """
    Owned-vehicle import business logic.

    The store is injected so tests can run the whole pipeline in memory.
    """

    def __init__(
        self,
        store: Optional[VehicleStore] = None,
        config: Optional[Settings] = None,
    ):
        self.store = store or get_vehicle_store()
        self.config = config or settings

    def import_csv(
        self,
        text: str,
        user_id: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> ImportReport:
        """
        Import owned vehicles for a user from CSV text.

        Args:
            text: Raw CSV content
            user_id: Owning user
            cancel_event: Optional flag checked between chunks

        Returns:
            ImportReport with counts and per-row outcomes

        Raises:
            CSVParseError: If the CSV is empty or has no usable header
            UserNotFoundError: If the user does not exist
            DatabaseError: If the catalog or existing IDs cannot be read
        """
        deadline = time.monotonic() + self.config.import_run_budget_seconds

        logger.info("import_started", user_id=user_id, size=len(text))

        parsed = parse_owned_vehicle_csv(text)

        if not self.store.user_exists(user_id):
            raise UserNotFoundError(str(user_id))

        report = ImportReportBuilder()
        report.add_parse_errors(parsed.errors, parsed.skipped_rows)
        report.add_rows(len(parsed.rows))

        index = ReferenceIndex.build(self.store.fetch_catalog())
        existing = self.store.fetch_existing_management_ids(user_id, parsed.management_ids)

        decided = reconcile_rows(
            parsed.rows,
            index,
            existing,
            reject_repeats=self.config.import_reject_duplicates_within_run,
        )

        committer = BatchCommitter(
            store=self.store,
            expander=SetExpansionService(
                self.store,
                index,
                self.config.set_expansion_policy,
            ),
            chunk_size=self.config.import_chunk_size,
            timeout_ms=self.config.import_chunk_timeout_ms,
        )
        committer.commit(
            decided,
            user_id,
            report,
            cancel_event=cancel_event,
            deadline=deadline,
        )

        result = report.build()

        logger.info(
            "import_completed",
            user_id=user_id,
            total_rows=result.total_rows,
            success=result.success_count,
            linked=result.linked_count,
            independent=result.independent_count,
            duplicates=result.duplicate_count,
            errors=result.error_count,
            set_components=result.set_component_count,
            cancelled=result.cancelled,
            duration_ms=result.duration_ms
        )

        return result


# Singleton instance for convenience
_vehicle_import_service: Optional[VehicleImportService] = None


def get_vehicle_import_service() -> VehicleImportService:
    """Get or create VehicleImportService instance."""
    global _vehicle_import_service
    if _vehicle_import_service is None:
        _vehicle_import_service = VehicleImportService()
    return _vehicle_import_service
