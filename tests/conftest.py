"""Shared fixtures for the retreat finance test suite."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from retreat_finance.config import AppSettings, DatabaseSettings
from retreat_finance.gateway import RetreatFinanceGateway
from retreat_finance.models.category import EntryKind
from retreat_finance.services.storage import Database


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def app_settings() -> AppSettings:
    """Application settings with a small, predictable policy."""
    return AppSettings(
        max_transaction_amount=Decimal("10000.00"),
        top_categories_limit=3,
        log_json=False,
    )


@pytest.fixture
def db_settings(tmp_path) -> DatabaseSettings:
    """A fresh SQLite file per test."""
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")


# ---------------------------------------------------------------------------
# Store and gateway
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database(db_settings):
    """Database with the schema created, disposed after the test."""
    db = Database(db_settings)
    await db.create_schema()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def gateway(database, app_settings) -> RetreatFinanceGateway:
    return RetreatFinanceGateway(database, settings=app_settings)


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def event_window():
    """A two-day window starting on a fixed date."""
    start = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)
    return start, start + timedelta(days=2)


@pytest_asyncio.fixture
async def retreat(gateway, event_window):
    """A planning-state event."""
    starts_at, ends_at = event_window
    return await gateway.create_event(
        name="Spring Retreat",
        starts_at=starts_at,
        ends_at=ends_at,
        participant_count=20,
        location="Mountain Lodge",
    )


@pytest_asyncio.fixture
async def fees(gateway):
    """An income category."""
    return await gateway.create_category("Fees", EntryKind.INCOME, "#00AA00")


@pytest_asyncio.fixture
async def food(gateway):
    """An expense category."""
    return await gateway.create_category("Food", EntryKind.EXPENSE, "#AA0000")


@pytest_asyncio.fixture
async def lodging(gateway):
    """A second expense category."""
    return await gateway.create_category("Lodging", EntryKind.EXPENSE, "#0000AA")
