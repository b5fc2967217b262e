"""
Unit tests for BatchCommitter.

Run: pytest tests/unit/test_batch_committer.py -v
"""

import threading
import time
import pytest
from decimal import Decimal

from services.batch_committer import (
    BUDGET_MESSAGE,
    CANCELLED_MESSAGE,
    BatchCommitter,
    to_create,
)
from services.import_report import ImportReportBuilder
from services.reference_index import ReferenceIndex
from services.row_reconciler import reconcile_rows
from services.set_expansion_service import SetExpansionService
from models.vehicle_import import ImportOutcome
from tests.conftest import InMemoryVehicleStore
from tests.factories import CandidateRowFactory, CatalogEntryFactory


CATALOG = (
    [CatalogEntryFactory.create(id=1, brand="KATO", product_code="10-1603", name="EF65")]
    + CatalogEntryFactory.create_set("10-1800", components=2, id=50, name="Kiha 58 set")
)


def build_committer(rows, store=None, chunk_size=2, existing=()):
    store = store or InMemoryVehicleStore(catalog=CATALOG)
    index = ReferenceIndex.build(CATALOG)
    decided = reconcile_rows(rows, index, set(existing))
    committer = BatchCommitter(
        store=store,
        expander=SetExpansionService(store, index),
        chunk_size=chunk_size,
        timeout_ms=5000,
    )
    report = ImportReportBuilder()
    report.add_rows(len(rows))
    return store, decided, committer, report


class TestToCreate:
    """Tests for to_create()"""

    def test_linked_row(self):
        _, decided, _, _ = build_committer([CandidateRowFactory.create(management_id="A-1")])

        record = to_create(decided[0], user_id=7)

        assert record.user_id == 7
        assert record.product_id == 1
        assert record.management_id == "A-1"
        assert record.independent is None

    def test_independent_row(self):
        _, decided, _, _ = build_committer([
            CandidateRowFactory.create(brand=None, product_code=None, product_name="Unknown Loco")
        ])

        record = to_create(decided[0], user_id=7)

        assert record.product_id is None
        assert record.independent.name == "Unknown Loco"


class TestBatchCommitterCommit:
    """Tests for BatchCommitter.commit()"""

    def test_all_rows_committed_in_chunks(self):
        rows = [CandidateRowFactory.create() for _ in range(5)]
        store, decided, committer, report = build_committer(rows, chunk_size=2)

        committer.commit(decided, 1, report)
        result = report.build()

        assert store.chunk_calls == [2, 2, 1]
        assert result.success_count == 5
        assert result.linked_count == 5
        assert result.error_count == 0

    def test_failed_chunk_isolated(self):
        """Chunk 2 of 3 fails: chunks 1 and 3 still commit."""
        rows = [CandidateRowFactory.create() for _ in range(5)]
        store = InMemoryVehicleStore(catalog=CATALOG)
        store.fail_chunks = {2}
        store, decided, committer, report = build_committer(rows, store=store, chunk_size=2)

        committer.commit(decided, 1, report)
        result = report.build()

        assert store.chunk_calls == [2, 2, 1]
        assert result.success_count == 3
        assert result.error_count == 2
        failed = [r.row for r in result.rows if r.outcome == ImportOutcome.ERROR]
        assert failed == [rows[2].row_number, rows[3].row_number]
        assert all("statement timeout" in e for e in result.errors)

    def test_unexpected_chunk_error_uses_exception_text(self):
        class BrokenStore(InMemoryVehicleStore):
            def create_many(self, records, timeout_ms):
                raise RuntimeError("server closed the connection")

        rows = [CandidateRowFactory.create()]
        store, decided, committer, report = build_committer(rows, store=BrokenStore(catalog=CATALOG))

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.error_count == 1
        assert result.errors == [f"Row {rows[0].row_number}: server closed the connection"]

    def test_duplicates_never_reach_store(self):
        rows = [
            CandidateRowFactory.create(management_id="OLD"),
            CandidateRowFactory.create(management_id="NEW"),
        ]
        store, decided, committer, report = build_committer(rows, existing={"OLD"})

        committer.commit(decided, 1, report)
        result = report.build()

        assert store.chunk_calls == [1]
        assert [r.management_id for r in store.records] == ["NEW"]
        assert result.duplicate_count == 1
        assert result.success_count == 1
        assert result.error_count == 0

    def test_repeat_of_stored_row_rejected(self):
        rows = [
            CandidateRowFactory.create(management_id="X"),
            CandidateRowFactory.create(management_id="X"),
        ]
        store, decided, committer, report = build_committer(rows, chunk_size=1)

        committer.commit(decided, 1, report)
        result = report.build()

        assert [r.management_id for r in store.records] == ["X"]
        assert [r.outcome for r in result.rows] == [
            ImportOutcome.LINKED,
            ImportOutcome.DUPLICATE_REJECTED,
        ]
        assert result.rows[1].message == f'Management ID "X" repeats row {rows[0].row_number} in this file'

    def test_repeat_committed_when_first_row_chunk_fails(self):
        rows = [
            CandidateRowFactory.create(management_id="X"),
            CandidateRowFactory.create(management_id="X"),
        ]
        store = InMemoryVehicleStore(catalog=CATALOG)
        store.fail_chunks = {1}
        store, decided, committer, report = build_committer(rows, store=store, chunk_size=1)

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.duplicate_count == 0
        assert result.error_count == 1
        assert result.success_count == 1
        assert [(r.row, r.outcome) for r in result.rows] == [
            (rows[0].row_number, ImportOutcome.ERROR),
            (rows[1].row_number, ImportOutcome.LINKED),
        ]
        assert [r.management_id for r in store.records] == ["X"]

    def test_repeat_in_open_chunk_closes_it(self):
        rows = [
            CandidateRowFactory.create(management_id="X"),
            CandidateRowFactory.create(management_id="X"),
            CandidateRowFactory.create(management_id="Y"),
        ]
        store, decided, committer, report = build_committer(rows, chunk_size=10)

        committer.commit(decided, 1, report)
        result = report.build()

        assert store.chunk_calls == [1, 1]
        assert result.success_count == 2
        assert result.duplicate_count == 1

    def test_repeat_after_invalid_first_row_is_committed(self):
        rows = [
            CandidateRowFactory.create(management_id="X", purchase_price=Decimal("-5")),
            CandidateRowFactory.create(management_id="X"),
        ]
        store, decided, committer, report = build_committer(rows, chunk_size=10)

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.error_count == 1
        assert result.success_count == 1
        assert result.duplicate_count == 0

    def test_invalid_row_does_not_sink_its_chunk(self):
        rows = [
            CandidateRowFactory.create(purchase_price=Decimal("-5")),
            CandidateRowFactory.create(),
        ]
        store, decided, committer, report = build_committer(rows, chunk_size=10)

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.success_count == 1
        assert result.error_count == 1
        assert result.errors[0].startswith(f"Row {rows[0].row_number}: Invalid row")

    def test_set_rows_expanded_after_chunks(self):
        rows = [
            CandidateRowFactory.create(product_code="10-1800", management_id="SET-1"),
            CandidateRowFactory.create(product_code="10-1603"),
        ]
        store, decided, committer, report = build_committer(rows, chunk_size=1)

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.success_count == 2
        assert result.set_component_count == 2
        assert len(store.components_of("SET-1")) == 2
        # Both chunks commit before any component is written
        assert [r.management_id for r in store.records[:2]] == ["SET-1", rows[1].management_id]

    def test_set_in_failed_chunk_not_expanded(self):
        rows = [CandidateRowFactory.create(product_code="10-1800", management_id="SET-1")]
        store = InMemoryVehicleStore(catalog=CATALOG)
        store.fail_chunks = {1}
        store, decided, committer, report = build_committer(rows, store=store)

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.set_component_count == 0
        assert store.records == []

    def test_set_expansion_failure_keeps_parent_success(self):
        rows = [CandidateRowFactory.create(product_code="10-1800", management_id="SET-1")]
        store = InMemoryVehicleStore(catalog=CATALOG)
        store.fail_components = {CATALOG[2]["id"]}
        store, decided, committer, report = build_committer(rows, store=store)

        committer.commit(decided, 1, report)
        result = report.build()

        assert result.success_count == 1
        assert result.error_count == 0
        assert result.set_component_count == 1
        assert len(result.set_expansion_errors) == 1
        assert result.rows[0].outcome == ImportOutcome.LINKED

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError):
            BatchCommitter(InMemoryVehicleStore(), None, chunk_size=0, timeout_ms=1000)


class TestBatchCommitterStop:
    """Tests for cancellation and the run budget."""

    def test_cancelled_before_start(self):
        rows = [CandidateRowFactory.create() for _ in range(3)]
        store, decided, committer, report = build_committer(rows)
        event = threading.Event()
        event.set()

        committer.commit(decided, 1, report, cancel_event=event)
        result = report.build()

        assert store.chunk_calls == []
        assert result.cancelled is True
        assert result.error_count == 3
        assert all(e.endswith(CANCELLED_MESSAGE) for e in result.errors)

    def test_cancel_between_chunks(self):
        """Chunks already committed stay; later chunks are not attempted."""
        event = threading.Event()

        class CancellingStore(InMemoryVehicleStore):
            def create_many(self, records, timeout_ms):
                created = super().create_many(records, timeout_ms)
                event.set()
                return created

        rows = [CandidateRowFactory.create() for _ in range(5)]
        store, decided, committer, report = build_committer(
            rows, store=CancellingStore(catalog=CATALOG), chunk_size=2
        )

        committer.commit(decided, 1, report, cancel_event=event)
        result = report.build()

        assert store.chunk_calls == [2]
        assert result.success_count == 2
        assert result.error_count == 3
        assert result.cancelled is True

    def test_deadline_passed(self):
        rows = [CandidateRowFactory.create() for _ in range(2)]
        store, decided, committer, report = build_committer(rows)

        committer.commit(decided, 1, report, deadline=time.monotonic() - 1)
        result = report.build()

        assert store.chunk_calls == []
        assert result.cancelled is True
        assert all(e.endswith(BUDGET_MESSAGE) for e in result.errors)

    def test_sets_from_committed_chunks_still_expand_after_cancel(self):
        event = threading.Event()

        class CancellingStore(InMemoryVehicleStore):
            def create_many(self, records, timeout_ms):
                created = super().create_many(records, timeout_ms)
                event.set()
                return created

        rows = [
            CandidateRowFactory.create(product_code="10-1800", management_id="SET-1"),
            CandidateRowFactory.create(),
        ]
        store, decided, committer, report = build_committer(
            rows, store=CancellingStore(catalog=CATALOG), chunk_size=1
        )

        committer.commit(decided, 1, report, cancel_event=event)
        result = report.build()

        assert result.success_count == 1
        assert result.set_component_count == 2
