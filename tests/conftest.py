"""
Shared test fixtures.

Provides a mock Supabase client for store tests and an in-memory
VehicleStore for running the import pipeline without a database.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings load at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator, Iterable, Optional

from models.catalog import CatalogEntry, ProductType
from models.owned_vehicle import OwnedVehicleCreate, OwnedVehicleResponse
from exceptions import DatabaseError
from utils.text_utils import normalize_identity


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, data: list = None, count: int = None, error: Exception = None):
        self._data = data or []
        self._count = count
        self._error = error
        self.filters = []

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        if isinstance(data, dict):
            data = [data]
        rows = []
        for i, item in enumerate(data, start=1):
            row = dict(item)
            row.setdefault("id", 1000 + i)
            row["created_at"] = datetime.utcnow().isoformat() + "Z"
            row["updated_at"] = datetime.utcnow().isoformat() + "Z"
            rows.append(row)
        self._data = rows
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def in_(self, column, values):
        self.filters.append(("in", column, list(values)))
        return self

    def ilike(self, column, pattern):
        self.filters.append(("ilike", column, pattern))
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        self._data = self._data[start:end + 1]
        return self

    def limit(self, count):
        self._data = self._data[:count]
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._error is not None:
            raise self._error
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, data: list = None, count: int = None, error: Exception = None):
        self._data = data or []
        self._count = count
        self._error = error

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._data.copy(), self._count, self._error)

    def insert(self, data):
        query = MockSupabaseQuery([], self._count, self._error)
        return query.insert(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self._rpc = {}
        self.rpc_calls = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count, "error": None}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table fail."""
        self._tables[table_name] = {"data": [], "count": None, "error": error}

    def set_rpc_result(self, function: str, data: list = None, error: Exception = None):
        """Configure the response of a database function."""
        self._rpc[function] = {"data": data or [], "error": error}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None, "error": None})
        return MockSupabaseTable(config["data"], config["count"], config["error"])

    def rpc(self, function: str, params: dict) -> MockSupabaseQuery:
        self.rpc_calls.append((function, params))
        config = self._rpc.get(function, {"data": [], "error": None})
        return MockSupabaseQuery(list(config["data"]), None, config["error"])


# ===================
# IN-MEMORY STORE
# ===================

class InMemoryVehicleStore:
    """
    VehicleStore kept in memory.

    Usage:
        store = InMemoryVehicleStore(catalog=[...], existing_ids={"A-1"})
        store.fail_chunks = {2}          # second create_many call raises
        store.fail_components = {12}     # create_one raises for product 12
    """

    def __init__(
        self,
        catalog: Optional[list] = None,
        existing_ids: Iterable[str] = (),
        users: Iterable[int] = (1,),
    ):
        self.catalog = list(catalog or [])
        self.users = set(users)
        self.records: list[OwnedVehicleResponse] = []
        self.independents: dict[int, dict] = {}
        self.existing_ids = set(existing_ids)
        self.fail_chunks: set[int] = set()
        self.fail_components: set[int] = set()
        self.chunk_calls: list[int] = []
        self.catalog_reads = 0
        self.existing_reads = 0
        self._next_id = 1

    def fetch_catalog(self) -> list[dict]:
        self.catalog_reads += 1
        return list(self.catalog)

    def fetch_existing_management_ids(self, user_id, management_ids) -> set[str]:
        self.existing_reads += 1
        stored = {r.management_id for r in self.records if r.user_id == user_id}
        return {m for m in management_ids if m in self.existing_ids or m in stored}

    def create_many(self, records: list[OwnedVehicleCreate], timeout_ms: int) -> list[OwnedVehicleResponse]:
        self.chunk_calls.append(len(records))
        if len(self.chunk_calls) in self.fail_chunks:
            raise DatabaseError("insert", "canceling statement due to statement timeout")
        return [self._store(record) for record in records]

    def create_one(self, record: OwnedVehicleCreate) -> OwnedVehicleResponse:
        if record.product_id in self.fail_components:
            raise DatabaseError("insert", "connection reset")
        return self._store(record)

    def find_set_components(self, user_id: int, parent_management_id: str) -> set[int]:
        return {
            r.product_id for r in self.records
            if r.user_id == user_id
            and r.parent_management_id == parent_management_id
            and r.product_id is not None
        }

    def user_exists(self, user_id: int) -> bool:
        return user_id in self.users

    def find_product(self, brand: str, product_code: str) -> Optional[CatalogEntry]:
        for row in self.catalog:
            if (normalize_identity(row["brand"]) == normalize_identity(brand)
                    and normalize_identity(row.get("product_code")) == normalize_identity(product_code)):
                return CatalogEntry(**row)
        return None

    def find_components(self, set_code: str) -> list[CatalogEntry]:
        wanted = normalize_identity(set_code)
        entries = [
            CatalogEntry(**row) for row in self.catalog
            if wanted and normalize_identity(row.get("parent_code")) == wanted
        ]
        return [e for e in entries if e.type == ProductType.SET_SINGLE]

    def components_of(self, parent_management_id: str) -> list[OwnedVehicleResponse]:
        """Test helper: component records created for one parent."""
        return [r for r in self.records if r.parent_management_id == parent_management_id]

    def _store(self, record: OwnedVehicleCreate) -> OwnedVehicleResponse:
        data = record.to_insert_dict()
        independent = data.pop("independent")
        data.pop("image_urls")
        created = OwnedVehicleResponse(id=self._next_id, **data)
        if independent is not None:
            self.independents[created.id] = independent
        self._next_id += 1
        self.records.append(created)
        return created


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": 1, "brand": "KATO", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the import database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            store = SupabaseVehicleStore()  # uses the mock
    """
    with patch("services.vehicle_store.get_import_client", return_value=mock_supabase):
        yield mock_supabase


@pytest.fixture
def memory_store() -> InMemoryVehicleStore:
    return InMemoryVehicleStore()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.post("/api/owned-vehicles/match-product", json={...})
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
