"""
Chunked, transactional writes for the owned-vehicle import.

Accepted rows are written in fixed-size chunks, one transaction per chunk,
strictly in input order. A failing chunk marks only its own rows as
errors; later chunks are still attempted. Set rows are queued while the
chunks commit and expanded once the chunk loop is over.
"""

import threading
import time
from dataclasses import replace
from typing import Iterator, Optional, Sequence
from pydantic import ValidationError as SchemaError
import structlog

from models.owned_vehicle import OwnedVehicleCreate
from models.vehicle_import import ImportOutcome, ReconciledRow, SetExpansionJob
from services.import_report import ImportReportBuilder
from services.set_expansion_service import SetExpansionService
from services.vehicle_store import VehicleStore
from exceptions import AppError

logger = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "Import cancelled before this row was committed"
BUDGET_MESSAGE = "Import time budget exhausted before this row was committed"


def to_create(decided: ReconciledRow, user_id: int) -> OwnedVehicleCreate:
    """Owned vehicle to insert for an accepted row."""
    row = decided.row
    return OwnedVehicleCreate(
        user_id=user_id,
        product_id=decided.entry.id if decided.entry else None,
        management_id=row.management_id,
        current_status=row.current_status,
        storage_condition=row.storage_condition,
        purchase_date=row.purchase_date,
        purchase_price_including_tax=row.purchase_price,
        notes=decided.notes,
        independent=decided.independent,
    )


class BatchCommitter:
    """
    Writes reconciled rows chunk by chunk.

    Usage:
        committer = BatchCommitter(store, expander, chunk_size=30, timeout_ms=8000)
        committer.commit(rows, user_id, report)
    """

    def __init__(
        self,
        store: VehicleStore,
        expander: SetExpansionService,
        chunk_size: int,
        timeout_ms: int,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.store = store
        self.expander = expander
        self.chunk_size = chunk_size
        self.timeout_ms = timeout_ms

    def commit(
        self,
        rows: Sequence[ReconciledRow],
        user_id: int,
        report: ImportReportBuilder,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> None:
        """
        Commit accepted rows and record every row's outcome.

        Duplicate rows are recorded without touching the store. A row that
        repeats an earlier management ID of the same input is rejected only
        once that earlier row has actually been stored; if the earlier row
        failed, the repeat is committed in its place.

        Args:
            rows: Reconciled rows in input order
            user_id: Owning user
            report: Report builder receiving outcomes
            cancel_event: Checked between chunks; when set, the remaining
                rows are marked as errors
            deadline: time.monotonic() value after which no new chunk starts
        """
        stored_ids: dict[str, int] = {}
        jobs: list[SetExpansionJob] = []
        stop_reason: Optional[str] = None
        stopped_rows = 0

        logger.info(
            "batch_commit_started",
            rows=len(rows),
            chunk_size=self.chunk_size
        )

        chunks = self._chunks(rows, user_id, report, stored_ids)
        for number, chunk in enumerate(chunks, start=1):
            if stop_reason is None:
                stop_reason = self._stop_reason(cancel_event, deadline)
                if stop_reason is not None:
                    logger.warning("batch_commit_stopped", chunk=number, reason=stop_reason)
                    report.mark_cancelled()

            if stop_reason is not None:
                for decided, _ in chunk:
                    report.record_error(decided, stop_reason)
                stopped_rows += len(chunk)
                continue

            jobs.extend(self._commit_chunk(number, chunk, report, stored_ids))

        if stopped_rows:
            logger.warning("batch_commit_rows_not_attempted", rows=stopped_rows)

        if jobs:
            created, failures = self.expander.drain(jobs)
            report.record_set_components(created)
            for row_number, message in failures:
                report.record_set_expansion_error(row_number, message)

    def _chunks(
        self,
        rows: Sequence[ReconciledRow],
        user_id: int,
        report: ImportReportBuilder,
        stored_ids: dict[str, int],
    ) -> Iterator[list[tuple[ReconciledRow, OwnedVehicleCreate]]]:
        """
        Yield chunks of rows to insert, in input order.

        Runs lazily alongside the commit loop, so stored_ids already holds
        every earlier chunk's management IDs when a repeat is reached. A
        repeat of an ID still waiting in the open chunk closes that chunk
        first.
        """
        chunk: list[tuple[ReconciledRow, OwnedVehicleCreate]] = []

        for decided in rows:
            if decided.outcome == ImportOutcome.DUPLICATE_REJECTED:
                report.record_duplicate(decided)
                continue

            if decided.repeat_of is not None:
                management_id = decided.row.management_id
                if any(d.row.management_id == management_id for d, _ in chunk):
                    yield chunk
                    chunk = []
                if management_id in stored_ids:
                    report.record_duplicate(replace(
                        decided,
                        outcome=ImportOutcome.DUPLICATE_REJECTED,
                        message=(
                            f'Management ID "{management_id}" repeats row '
                            f"{stored_ids[management_id]} in this file"
                        ),
                    ))
                    continue

            try:
                chunk.append((decided, to_create(decided, user_id)))
            except SchemaError as e:
                report.record_error(decided, f"Invalid row: {e.errors()[0]['msg']}")
                continue

            if len(chunk) == self.chunk_size:
                yield chunk
                chunk = []

        if chunk:
            yield chunk

    def _commit_chunk(
        self,
        number: int,
        chunk: Sequence[tuple[ReconciledRow, OwnedVehicleCreate]],
        report: ImportReportBuilder,
        stored_ids: dict[str, int],
    ) -> list[SetExpansionJob]:
        """Write one chunk; returns expansion jobs for its set rows."""
        try:
            created = self.store.create_many(
                [record for _, record in chunk],
                timeout_ms=self.timeout_ms
            )
        except Exception as e:
            reason = e.message if isinstance(e, AppError) else str(e)
            logger.error(
                "chunk_failed",
                chunk=number,
                rows=len(chunk),
                first_row=chunk[0][0].row.row_number,
                error=reason,
                error_type=type(e).__name__
            )
            for decided, _ in chunk:
                report.record_error(decided, reason)
            return []

        jobs = []
        for (decided, _), vehicle in zip(chunk, created):
            report.record_committed(decided, vehicle)
            if decided.row.management_id:
                stored_ids.setdefault(decided.row.management_id, decided.row.row_number)
            if decided.expand_set:
                jobs.append(SetExpansionJob(
                    set_entry=decided.entry,
                    parent=vehicle,
                    row_number=decided.row.row_number,
                ))

        logger.info(
            "chunk_committed",
            chunk=number,
            rows=len(chunk),
            sets_queued=len(jobs)
        )

        return jobs

    @staticmethod
    def _stop_reason(
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ) -> Optional[str]:
        if cancel_event is not None and cancel_event.is_set():
            return CANCELLED_MESSAGE
        if deadline is not None and time.monotonic() >= deadline:
            return BUDGET_MESSAGE
        return None
