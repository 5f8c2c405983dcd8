"""
Shared test fixtures.

The mock Supabase client keeps rows in memory and applies eq/lt/gte
filters, ordering and limits, so services can be tested against the
rows they actually wrote.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("CACHE_PATH", "")

import pytest
from decimal import Decimal
from unittest.mock import patch
from typing import Generator

from services.cache_service import LocalCache
from services.remote_store_service import RemoteTableStore
from services.price_ledger_service import PriceLedgerService
from models.product import PriceColumn
from tests.factories import PriceRowFactory

PRICES_TABLE = "Product Prices"
FULL_LIST_TABLE = "Full Product List"


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Chainable query that runs against the client's in-memory tables."""

    def __init__(self, client: "MockSupabaseClient", table: str, action: str, payload=None):
        self._client = client
        self._table = table
        self._action = action
        self._payload = payload
        self._filters = []
        self._orders = []
        self._limit = None

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) < value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def order(self, column, desc: bool = False):
        self._orders.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append((self._table, self._action, self._payload))
        if self._table in self._client.failing_tables:
            raise Exception("connection refused")

        rows = self._client.rows(self._table)

        if self._action == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for item in items:
                self._client._next_id += 1
                stored = {"id": self._client._next_id, **item}
                rows.append(stored)
                inserted.append(dict(stored))
            return MockSupabaseResponse(data=inserted)

        if self._action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return MockSupabaseResponse(data=updated)

        if self._action == "delete":
            removed = [dict(r) for r in rows if self._matches(r)]
            rows[:] = [r for r in rows if not self._matches(r)]
            return MockSupabaseResponse(data=removed)

        selected = [dict(r) for r in rows if self._matches(r)]
        for column, desc in reversed(self._orders):
            selected.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        if self._limit is not None:
            selected = selected[:self._limit]
        return MockSupabaseResponse(data=selected)


class MockSupabaseTable:
    """Mock Supabase table entry point."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "select")

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", data)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name, "delete")


class MockSupabaseClient:
    """In-memory Supabase client."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._next_id = 0
        self.failing_tables: set[str] = set()
        self.calls: list[tuple] = []

    def set_table_data(self, table_name: str, data: list):
        """Seed a table (rows are copied)."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        return self._tables.setdefault(table_name, [])

    def fail(self, *table_names: str):
        """Make every query on these tables raise."""
        self.failing_tables.update(table_names)

    def recover(self):
        self.failing_tables.clear()

    def actions(self, table_name: str) -> list[str]:
        return [action for table, action, _ in self.calls if table == table_name]

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an in-memory Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("Product Prices", [PriceRowFactory.create(name="Rose Oil")])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any code using get_supabase_client() gets the mock.
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.remote_store_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.stock_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    """File-backed cache in a temp directory."""
    return LocalCache(tmp_path / "cache.json", scope="test")


@pytest.fixture
def prices_store(mock_supabase) -> RemoteTableStore:
    return RemoteTableStore(PRICES_TABLE, PriceColumn.NAME, client=mock_supabase)


@pytest.fixture
def full_list_store(mock_supabase) -> RemoteTableStore:
    return RemoteTableStore(FULL_LIST_TABLE, PriceColumn.NAME, client=mock_supabase)


@pytest.fixture
def ledger(cache, prices_store, full_list_store) -> PriceLedgerService:
    """Ledger at rate 2.00 with remote calls run inline."""
    return PriceLedgerService(
        cache=cache,
        prices=prices_store,
        full_list=full_list_store,
        default_rate=Decimal("2.00"),
    )


@pytest.fixture
def seeded_ledger(ledger, mock_supabase) -> PriceLedgerService:
    """Ledger loaded from a remote table holding two products."""
    mock_supabase.set_table_data(PRICES_TABLE, [
        PriceRowFactory.create(name="Rose Oil", old_price="30.00", cny_price="50.00", office_stock="4"),
        PriceRowFactory.create(name="Argan Serum", old_price="12.50", cny_price="20.00", office_stock="0"),
    ])
    ledger.load()
    return ledger


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(mock_db, ledger):
    """
    FastAPI test client wired to the in-memory ledger and mock database.

    Background tasks run before the request call returns.
    """
    from fastapi.testclient import TestClient
    import services.price_ledger_service as ledger_module
    import services.stock_service as stock_module
    from main import app

    ledger_module._price_ledger_service = ledger
    stock_module._stock_service = None
    yield TestClient(app)
    ledger_module._price_ledger_service = None
    stock_module._stock_service = None
