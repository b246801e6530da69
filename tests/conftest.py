"""
Pytest fixtures for the inventory analytics test suite.

Provides:
- A deterministic clock pinned to 2024-06-15 12:00 UTC
- An in-memory SQLite session for the SQL read-state store
- Logging reset between tests

Record builders live in tests/builders.py.
"""

from datetime import date, datetime

import pytest

from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.logging_config import LogContext, reset_logging
from tests.builders import NOW, TODAY


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests so caplog sees every record."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(NOW)


@pytest.fixture
def session():
    """Session on a fresh in-memory SQLite database."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    db_session = get_session()
    yield db_session
    db_session.close()
    drop_tables()
    reset_engine()
