"""Pytest configuration and fixtures."""

import os
import tempfile
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("REMOTE_STORE_URL", "http://localhost:54321")
os.environ.setdefault("REMOTE_STORE_KEY", "test-anon-key")
os.environ.setdefault("LEDGER_TIMEZONE", "UTC")
os.environ.setdefault(
    "LEDGER_DATA_DIR", str(Path(tempfile.gettempdir()) / "hotel_ledger_tests")
)

from hotel_ledger.config import LedgerSettings, get_settings  # noqa: E402
from hotel_ledger.models import (  # noqa: E402
    ExpenseCategory,
    ExpenseEntry,
    IncomeEntry,
    IncomeSource,
    PaymentMode,
    StaffMember,
    StaffRole,
)
from hotel_ledger.store import RecordStore  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Make every test read settings from the environment again."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing the local snapshot at a temporary directory."""
    return LedgerSettings(LEDGER_DATA_DIR=str(tmp_path), LEDGER_TIMEZONE="UTC")


@pytest.fixture
def roster():
    """Two staff members."""
    return [
        StaffMember("s1", "John Doe", StaffRole.MANAGER, Decimal("50000"), "2023-01-15"),
        StaffMember("s2", "Jane Smith", StaffRole.RECEPTIONIST, Decimal("25000"), "2023-03-01"),
    ]


@pytest.fixture
def store(roster):
    """A store holding only the roster."""
    store = RecordStore()
    for member in roster:
        store.add(member)
    return store


@pytest.fixture
def march_store(store):
    """Roster plus a handful of March 2024 entries."""
    store.add(IncomeEntry("inc-1", "2024-03-01", IncomeSource.ROOM_RENT, Decimal("15000")))
    store.add(
        IncomeEntry("inc-2", "2024-03-10", IncomeSource.RESTAURANT, Decimal("4500"), "Dinner")
    )
    store.add(IncomeEntry("inc-3", "2024-02-20", IncomeSource.ROOM_RENT, Decimal("10000")))
    store.add(
        ExpenseEntry(
            "exp-1",
            "2024-03-01",
            ExpenseCategory.FOOD,
            Decimal("3000"),
            PaymentMode.CASH,
            "Vegetables",
        )
    )
    store.add(
        ExpenseEntry(
            "exp-2",
            "2024-03-10",
            ExpenseCategory.ELECTRICITY,
            Decimal("8000"),
            PaymentMode.ONLINE,
        )
    )
    return store


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def mock_remote():
    """A stand-in RemoteStoreClient whose calls all succeed."""
    remote = AsyncMock()
    remote.upsert = AsyncMock(return_value={})
    remote.delete = AsyncMock(return_value={})
    remote.close = AsyncMock()
    return remote
