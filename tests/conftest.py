"""Pytest configuration."""

import sys
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio

STORAGE_MODULES = (
    "vanstock.storage.db",
    "vanstock.storage.days",
    "vanstock.storage.lines",
    "vanstock.storage.inventory",
)


@pytest.fixture(autouse=True)
def isolate_test_database(tmp_path, monkeypatch):
    """
    Isolate each test with its own database.

    This fixture patches DB_PATH in all storage modules to use
    a unique temporary database for each test.
    """
    test_db_path = str(tmp_path / "test_isolated.sqlite3")

    for module in STORAGE_MODULES:
        monkeypatch.setattr(f"{module}.DB_PATH", test_db_path)

    yield test_db_path


@pytest_asyncio.fixture
async def database(isolate_test_database) -> AsyncGenerator[str, None]:
    """Create tables in the isolated test database."""
    from vanstock.storage.db import init_db

    await init_db()
    yield isolate_test_database


@pytest.fixture
def vehicle_id() -> str:
    return "VAN-01"


@pytest.fixture
def operator_id() -> str:
    return "op-1"


@pytest.fixture
def today() -> date:
    return date(2026, 3, 10)


class FakeOrderSync:
    """In-memory OrderSyncPort."""

    def __init__(self, quantities=None, recompute_ok=True):
        self.quantities = dict(quantities or {})
        self.recompute_ok = recompute_ok
        self.fetch_calls = 0
        self.recompute_calls = 0

    async def ordered_quantities(self, vehicle_id, stock_date):
        self.fetch_calls += 1
        return dict(self.quantities)

    async def trigger_recompute(self, vehicle_id, stock_date):
        self.recompute_calls += 1
        return self.recompute_ok


@pytest.fixture
def order_sync() -> FakeOrderSync:
    return FakeOrderSync()
