"""
Owned-vehicle CSV import models.

Dataclasses carry rows through one import run; the pydantic models at the
bottom are the report returned to the caller.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.catalog import CatalogEntry
from models.owned_vehicle import (
    IndependentDescriptor,
    OwnedVehicleResponse,
    StorageCondition,
    VehicleStatus,
)


class ImportOutcome(str, Enum):
    """Final disposition of one CSV row."""
    LINKED = "LINKED"
    INDEPENDENT = "INDEPENDENT"
    DUPLICATE_REJECTED = "DUPLICATE_REJECTED"
    ERROR = "ERROR"


# ===================
# RUN-SCOPED RECORDS
# ===================

@dataclass
class CandidateRow:
    """One parsed CSV line, not yet checked against the catalog."""
    row_number: int
    management_id: str = ""
    brand: Optional[str] = None
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    vehicle_type: Optional[str] = None
    current_status: VehicleStatus = VehicleStatus.NORMAL
    storage_condition: StorageCondition = StorageCondition.WITH_CASE
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    notes: Optional[str] = None

    @property
    def has_catalog_key(self) -> bool:
        return bool(self.brand and self.product_code)


@dataclass
class OwnedVehicleParseResult:
    """Rows and structural errors from one CSV."""
    rows: list[CandidateRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped_rows: list[int] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def management_ids(self) -> list[str]:
        """Non-empty management IDs in input order, without repeats."""
        seen: dict[str, None] = {}
        for row in self.rows:
            if row.management_id:
                seen.setdefault(row.management_id, None)
        return list(seen)


@dataclass
class ReconciledRow:
    """Reconciler decision for one row."""
    row: CandidateRow
    outcome: ImportOutcome
    entry: Optional[CatalogEntry] = None
    independent: Optional[IndependentDescriptor] = None
    notes: Optional[str] = None
    message: Optional[str] = None
    repeat_of: Optional[int] = None

    @property
    def expand_set(self) -> bool:
        """Linked to a set, so its components must be recorded too."""
        return (
            self.outcome == ImportOutcome.LINKED
            and self.entry is not None
            and self.entry.is_set
        )

    @property
    def accepted(self) -> bool:
        return self.outcome in (ImportOutcome.LINKED, ImportOutcome.INDEPENDENT)


@dataclass
class SetExpansionJob:
    """Component expansion queued after a set row's chunk committed."""
    set_entry: CatalogEntry
    parent: OwnedVehicleResponse
    row_number: int


# ===================
# REPORT
# ===================

class RowResult(BaseSchema):
    """Outcome of one input row."""

    row: int = Field(..., description="1-based input line")
    management_id: str = ""
    outcome: ImportOutcome
    message: Optional[str] = None
    owned_vehicle_id: Optional[int] = None
    product_id: Optional[int] = None


class ImportReport(BaseSchema):
    """Result of one owned-vehicle import run."""

    total_rows: int = 0
    success_count: int = 0
    linked_count: int = 0
    independent_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0
    set_component_count: int = 0
    skipped_rows: list[int] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    rows: list[RowResult] = Field(default_factory=list)
    set_expansion_errors: list[str] = Field(default_factory=list)
    cancelled: bool = False
    duration_ms: int = 0


class ImportResponse(BaseSchema):
    """Upload endpoint response."""

    message: str
    results: ImportReport
