"""
Row reconciliation for the owned-vehicle import.

Decides per candidate row whether it is a duplicate, links to a catalog
entry, or becomes an independent record. Pure functions: no database
access happens here.
"""

from typing import AbstractSet, Iterable
import structlog

from models.owned_vehicle import IndependentDescriptor
from models.vehicle_import import CandidateRow, ImportOutcome, ReconciledRow
from services.reference_index import ReferenceIndex

logger = structlog.get_logger(__name__)

UNKNOWN_NAME = "<unknown>"


def reconcile_row(
    row: CandidateRow,
    index: ReferenceIndex,
    known_ids: AbstractSet[str],
) -> ReconciledRow:
    """
    Decide the disposition of one row.

    Order, first match wins:
        1. management ID already on file → DUPLICATE_REJECTED
        2. brand + code present → LINKED on hit, INDEPENDENT on miss
        3. otherwise → INDEPENDENT

    Args:
        row: Parsed CSV row
        index: Catalog index for this run
        known_ids: Management IDs that already exist for the user

    Returns:
        ReconciledRow
    """
    if row.management_id and row.management_id in known_ids:
        return ReconciledRow(
            row=row,
            outcome=ImportOutcome.DUPLICATE_REJECTED,
            message=f'Management ID "{row.management_id}" already exists',
        )

    if row.has_catalog_key:
        entry = index.lookup(row.brand, row.product_code)
        if entry is not None:
            return ReconciledRow(
                row=row,
                outcome=ImportOutcome.LINKED,
                entry=entry,
                notes=row.notes,
            )

        miss_note = (
            f"Catalog entry not found (brand: {row.brand}, code: {row.product_code})"
        )
        return ReconciledRow(
            row=row,
            outcome=ImportOutcome.INDEPENDENT,
            independent=IndependentDescriptor(
                name=row.product_name or f"{row.brand} {row.product_code}",
                brand=row.brand,
                product_code=row.product_code,
                vehicle_type=row.vehicle_type,
                description=miss_note,
            ),
            notes="\n".join(part for part in (miss_note, row.notes) if part),
            message=miss_note,
        )

    return ReconciledRow(
        row=row,
        outcome=ImportOutcome.INDEPENDENT,
        independent=IndependentDescriptor(
            name=row.product_name or UNKNOWN_NAME,
            brand=row.brand,
            product_code=row.product_code,
            vehicle_type=row.vehicle_type,
        ),
        notes=row.notes,
    )


def reconcile_rows(
    rows: Iterable[CandidateRow],
    index: ReferenceIndex,
    existing_ids: AbstractSet[str],
    reject_repeats: bool = True,
) -> list[ReconciledRow]:
    """
    Reconcile rows in input order.

    A later row reusing a management ID from earlier in the same input keeps
    its own disposition and gets repeat_of set to the first row's number.
    The committer rejects it only if that earlier row is actually stored.

    Args:
        rows: Parsed CSV rows
        index: Catalog index for this run
        existing_ids: Management IDs on file before the run started
        reject_repeats: Flag repeats of a management ID within this input

    Returns:
        One ReconciledRow per input row, same order
    """
    first_seen: dict[str, int] = {}
    results = []

    for row in rows:
        decided = reconcile_row(row, index, existing_ids)
        if reject_repeats and decided.accepted and row.management_id:
            if row.management_id in first_seen:
                decided.repeat_of = first_seen[row.management_id]
            else:
                first_seen[row.management_id] = row.row_number
        results.append(decided)

    logger.info(
        "rows_reconciled",
        total=len(results),
        linked=sum(1 for r in results if r.outcome == ImportOutcome.LINKED),
        independent=sum(1 for r in results if r.outcome == ImportOutcome.INDEPENDENT),
        duplicates=sum(1 for r in results if r.outcome == ImportOutcome.DUPLICATE_REJECTED),
        repeats=sum(1 for r in results if r.repeat_of is not None),
    )

    return results
