"""
Shared fixtures for the transfer sync test suite.

Persistence fixtures run against in-memory SQLite; every test gets a
fresh schema.
"""

from datetime import datetime, timezone

import pytest

from core.clock import MockClock
from database.engine import create_all_tables, create_database_engine, create_session_factory
from transfer_sync.config import RetrySettings, TransferSyncSettings
from transfer_sync.sink import PersistenceSink


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """In-memory SQLite engine with the transfer store schema."""
    engine = create_database_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def sink(session_factory):
    return PersistenceSink(session_factory)


@pytest.fixture
def clock():
    return MockClock(T0)


@pytest.fixture
def settings():
    """Settings with credentials present and retries that never sleep long."""
    return TransferSyncSettings(
        bitquery_api_key="test-bitquery-key",
        cdp_bearer_token="test-cdp-token",
        request_timeout_seconds=5.0,
        retry=RetrySettings(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter=0.0),
    )
