"""Pytest fixtures for reminder engine tests."""

from contextlib import asynccontextmanager

import pytest
from sqlalchemy import create_engine

from core.enums import DeliveryOutcome
from core.notifications.dedup import TRANSIENT_ATTEMPT_LIMIT
from core.notifications.types import DeliveryKey
from core.tables import metadata


@pytest.fixture(autouse=True)
def clear_engine_state():
    """Forget memoized content and the last tick report between tests."""
    from core.notifications import scheduler
    from core.notifications.content import clear_content_cache

    clear_content_cache()
    scheduler._last_report = None
    yield
    clear_content_cache()
    scheduler._last_report = None


class FakeDeliveryStore:
    """In-memory stand-in for delivery_records with the same settlement rules."""

    def __init__(self):
        self.records: list[tuple[DeliveryKey, DeliveryOutcome]] = []

    def sent_keys(self) -> list[DeliveryKey]:
        return [key for key, outcome in self.records if outcome == DeliveryOutcome.sent]

    async def is_delivery_settled(self, key: DeliveryKey) -> bool:
        outcomes = [outcome for k, outcome in self.records if k == key]
        if DeliveryOutcome.sent in outcomes or DeliveryOutcome.failed_permanent in outcomes:
            return True
        return outcomes.count(DeliveryOutcome.failed_transient) >= TRANSIENT_ATTEMPT_LIMIT

    async def record_delivery(self, key, outcome, channel="whatsapp", error_message=None) -> bool:
        if outcome == DeliveryOutcome.sent and key in self.sent_keys():
            return False
        self.records.append((key, outcome))
        return True


@pytest.fixture
def delivery_store(monkeypatch):
    """Patch the evaluator's dedup store with an in-memory one."""
    store = FakeDeliveryStore()
    monkeypatch.setattr(
        "core.notifications.evaluator.is_delivery_settled", store.is_delivery_settled
    )
    monkeypatch.setattr(
        "core.notifications.evaluator.record_delivery", store.record_delivery
    )
    return store


class SqliteConnection:
    """Async facade over a sync SQLite connection, enough for the query helpers."""

    def __init__(self, conn):
        self.conn = conn

    async def execute(self, statement):
        return self.conn.execute(statement)


@pytest.fixture
def sqlite_transaction():
    """
    In-memory database with every table, exposed as a get_transaction stand-in.

    Patch it over a module's get_connection/get_transaction to run its real
    statements.
    """
    engine = create_engine("sqlite://")
    metadata.create_all(engine)

    @asynccontextmanager
    async def transaction():
        with engine.begin() as conn:
            yield SqliteConnection(conn)

    yield transaction
    engine.dispose()
