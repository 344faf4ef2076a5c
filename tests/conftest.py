"""
Shared test fixtures.
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

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Generator

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


def _sort_key(value):
    # Nulls sort last ascending
    return (value is None, value if value is not None else 0)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters are recorded but not applied: configure each table with the
    rows the query under test should return.
    """

    def __init__(self, data: list = None, count: int = None, error: Exception = None):
        self._data = data or []
        self._count = count
        self._error = error
        self._is_single = False
        self.filters: list[tuple] = []
        self.orders: list[tuple] = []

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column, value):
        self.filters.append(("neq", column, value))
        return self

    def in_(self, column, values):
        self.filters.append(("in", column, values))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._error is not None:
            raise self._error
        # First order() call is the primary key, as in PostgREST
        for column, desc in reversed(self.orders):
            self._data.sort(key=lambda row: _sort_key(row.get(column)), reverse=desc)
        if self._is_single:
            data = self._data[0] if self._data else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)
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


class MockSupabaseClient:
    """Mock Supabase client that counts table reads."""

    def __init__(self):
        self._tables = {}
        self.calls: dict[str, int] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count, "error": None}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query against a table raise."""
        self._tables[table_name] = {"data": [], "count": None, "error": error}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        self.calls[name] = self.calls.get(name, 0) + 1
        config = self._tables.get(name, {"data": [], "count": None, "error": None})
        return MockSupabaseTable(config["data"], config["count"], config["error"])


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("assemblies", [
                {"id": 1, "qty_ordered_breakdown": [10, 10], ...}
            ])
    """
    return MockSupabaseClient()


def _reset_singletons():
    import services.assembly_service
    import services.external_steps_service
    import services.product_attribute_service

    services.assembly_service._service = None
    services.external_steps_service._service = None
    services.product_attribute_service._service = None


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("assembly_activities", [...])
            # Now any service using get_supabase_client() gets the mock
    """
    _reset_singletons()
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.assembly_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.product_attribute_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase
    _reset_singletons()


@pytest.fixture
def fixed_now() -> datetime:
    """Reference instant for lateness checks."""
    return datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("assemblies", [...])
            response = test_client_with_mock_db.get("/api/assemblies/1/stage-rows")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
