"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from itertools import count
from unittest.mock import patch
from typing import Generator

from models.catalog import ExistingCatalogState
from services.diff_engine import DiffEngine
from services.validation_engine import ValidationEngine
from tests.factories import (
    ROTOR_SPECIFICATIONS,
    CrossReferenceRecordFactory,
    PartRecordFactory,
    VehicleApplicationRecordFactory,
)
from tests.fakes import InMemoryCatalogStore


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, table: "MockSupabaseTable", data: list = None):
        self._table = table
        self._data = list(data or [])
        self._range = None
        self._limit = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        rows = data if isinstance(data, list) else [data]
        self._table.inserted.extend(rows)
        self._data = [{**row, "created_at": "2026-01-01T00:00:00+00:00"} for row in rows]
        return self

    def delete(self):
        return self

    def eq(self, column, value):
        self._data = [row for row in self._data if row.get(column) == value]
        return self

    def order(self, column, desc: bool = False):
        self._table.orders.append((column, desc))
        return self

    def range(self, start, end):
        self._table.ranges.append((start, end))
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._table.error is not None:
            raise self._table.error
        data = self._data
        if self._range is not None:
            start, end = self._range
            data = data[start:end + 1]
        if self._limit is not None:
            data = data[:self._limit]
        return MockSupabaseResponse(data=data)


class MockSupabaseTable:
    """Mock Supabase table with configurable rows."""

    def __init__(self, data: list = None):
        self._data = data or []
        self.error = None
        self.inserted: list = []
        self.ranges: list = []
        self.orders: list = []

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self, self._data)

    def insert(self, data):
        return MockSupabaseQuery(self, []).insert(data)

    def delete(self):
        return MockSupabaseQuery(self, self._data)


class MockRpcCall:
    def __init__(self, client: "MockSupabaseClient", name: str, params: dict):
        self._client = client
        self.name = name
        self.params = params

    def execute(self) -> MockSupabaseResponse:
        self._client.rpc_calls.append((self.name, self.params))
        error = self._client.rpc_errors.get(self.name)
        if error is not None:
            raise error
        return MockSupabaseResponse(data=None)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}
        self.rpc_calls: list = []
        self.rpc_errors: dict[str, Exception] = {}

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table."""
        self._tables[table_name] = MockSupabaseTable(data)

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self.table(table_name).error = error

    def table(self, name: str) -> MockSupabaseTable:
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable([])
        return self._tables[name]

    def rpc(self, name: str, params: dict) -> MockRpcCall:
        return MockRpcCall(self, name, params)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("parts", [...])
    """
    return MockSupabaseClient()


@pytest.fixture
def validation_engine() -> ValidationEngine:
    """Validation engine pinned to 2025 so year bounds are stable."""
    return ValidationEngine(acr_sku_prefix="ACR", current_year=2025)


@pytest.fixture
def diff_engine() -> DiffEngine:
    """Diff engine with predictable ids: new-1, new-2, ..."""
    counter = count(1)
    return DiffEngine(id_factory=lambda: f"new-{next(counter)}")


@pytest.fixture
def empty_state() -> ExistingCatalogState:
    return ExistingCatalogState.empty()


@pytest.fixture
def seeded_rows() -> dict:
    """
    Small catalog: two parts, one fitment, one NATIONAL cross reference.
    """
    brake = PartRecordFactory.create(
        id="part-1",
        acr_sku="ACR-1001",
        part_type="Brake Rotor",
        position_type="Front",
        specifications=ROTOR_SPECIFICATIONS,
    )
    hub = PartRecordFactory.create(id="part-2", acr_sku="ACR-2002", part_type="Hub Assembly")
    return {
        "parts": [brake, hub],
        "vehicle_applications": [
            VehicleApplicationRecordFactory.create(
                id="va-1", part_id="part-1", make="Toyota", model="Corolla",
                start_year=2018, end_year=2023,
            ),
        ],
        "cross_references": [
            CrossReferenceRecordFactory.create(
                id="xref-1", acr_part_id="part-1",
                competitor_brand="NATIONAL", competitor_sku="NAT-100",
            ),
        ],
        "aliases": [],
    }


@pytest.fixture
def seeded_state(seeded_rows) -> ExistingCatalogState:
    return ExistingCatalogState.from_rows(
        seeded_rows["parts"],
        seeded_rows["vehicle_applications"],
        seeded_rows["cross_references"],
        seeded_rows["aliases"],
    )


@pytest.fixture
def fake_store(seeded_rows) -> InMemoryCatalogStore:
    """In-memory store holding the seeded catalog."""
    return InMemoryCatalogStore(**seeded_rows)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_fake_store(fake_store) -> Generator:
    """
    FastAPI test client whose routes use fake_store.

    Usage:
        def test_endpoint(test_client_with_fake_store, fake_store):
            response = test_client_with_fake_store.post("/api/import/validate", json=...)
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("routes.imports.get_catalog_store", return_value=fake_store):
        with patch("routes.export.get_catalog_store", return_value=fake_store):
            yield TestClient(app)
