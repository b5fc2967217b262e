"""
Result aggregation for the owned-vehicle import.

Collects per-row outcomes across all chunks into one ImportReport.
Recording never raises, so a reporting problem cannot abort a run.
"""

import time
from typing import Optional

from models.owned_vehicle import OwnedVehicleResponse
from models.vehicle_import import (
    ImportOutcome,
    ImportReport,
    ReconciledRow,
    RowResult,
)


class ImportReportBuilder:
    """Accumulates outcomes for one import run."""

    def __init__(self):
        self._started = time.monotonic()
        self._report = ImportReport()

    @property
    def report(self) -> ImportReport:
        return self._report

    def add_parse_errors(self, errors: list[str], skipped_rows: list[int]) -> None:
        """Rows the parser rejected count as input rows with errors."""
        self._report.total_rows += len(skipped_rows)
        self._report.error_count += len(skipped_rows)
        self._report.skipped_rows.extend(skipped_rows)
        self._report.errors.extend(errors)

    def add_rows(self, count: int) -> None:
        self._report.total_rows += count

    def record_committed(
        self,
        decided: ReconciledRow,
        created: Optional[OwnedVehicleResponse] = None,
    ) -> None:
        """Row written successfully, either linked or independent."""
        if decided.outcome == ImportOutcome.LINKED:
            self._report.linked_count += 1
        else:
            self._report.independent_count += 1
        self._report.success_count += 1
        self._report.rows.append(RowResult(
            row=decided.row.row_number,
            management_id=decided.row.management_id,
            outcome=decided.outcome,
            message=decided.message,
            owned_vehicle_id=created.id if created else None,
            product_id=decided.entry.id if decided.entry else None,
        ))

    def record_duplicate(self, decided: ReconciledRow) -> None:
        self._report.duplicate_count += 1
        self._report.rows.append(RowResult(
            row=decided.row.row_number,
            management_id=decided.row.management_id,
            outcome=ImportOutcome.DUPLICATE_REJECTED,
            message=decided.message,
        ))

    def record_error(self, decided: ReconciledRow, reason: str) -> None:
        self._report.error_count += 1
        self._report.errors.append(f"Row {decided.row.row_number}: {reason}")
        self._report.rows.append(RowResult(
            row=decided.row.row_number,
            management_id=decided.row.management_id,
            outcome=ImportOutcome.ERROR,
            message=reason,
            product_id=decided.entry.id if decided.entry else None,
        ))

    def record_set_components(self, count: int) -> None:
        self._report.set_component_count += count

    def record_set_expansion_error(self, row_number: int, reason: str) -> None:
        """Best-effort failure: listed separately, the row keeps its outcome."""
        self._report.set_expansion_errors.append(f"Row {row_number}: {reason}")

    def mark_cancelled(self) -> None:
        self._report.cancelled = True

    def build(self) -> ImportReport:
        """Finalize counts and timing."""
        self._report.rows.sort(key=lambda r: r.row)
        self._report.duration_ms = int((time.monotonic() - self._started) * 1000)
        return self._report
