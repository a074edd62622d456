"""
Shared pytest fixtures for the stamp server test suite.

This module provides fixtures that are automatically available to all test files:
- A frozen, steerable reference clock
- A document store backed by a temporary JSON file
- Ledger, notifier and operator directory wired to that store
- A FastAPI TestClient with a known admin API key
"""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from stamp_server.api.server import create_app
from stamp_server.config import AuthSettings, LoyaltySettings, ServerConfig
from stamp_server.core.ledger import LedgerEngine
from stamp_server.core.notifier import ChangeEvent, ChangeNotifier
from stamp_server.core.operators import OperatorDirectory
from stamp_server.store import JsonDocumentStore
from tests.constants import TEST_API_KEY


class FrozenClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


# ============================================================================
# CORE FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """A Monday morning, UTC."""
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "stamps.json"


@pytest.fixture
def store(store_path: Path) -> JsonDocumentStore:
    return JsonDocumentStore(store_path)


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def published(notifier: ChangeNotifier) -> list[ChangeEvent]:
    """Every event the notifier publishes during the test."""
    events: list[ChangeEvent] = []
    notifier.subscribe(events.append)
    return events


@pytest.fixture
def ledger(store: JsonDocumentStore, notifier: ChangeNotifier, clock: FrozenClock) -> LedgerEngine:
    return LedgerEngine(store, notifier, LoyaltySettings(), clock=clock)


@pytest.fixture
def operators(store: JsonDocumentStore, clock: FrozenClock) -> OperatorDirectory:
    return OperatorDirectory(store, AuthSettings(api_keys=[TEST_API_KEY]), clock=clock)


@pytest.fixture
def stamp_up(ledger: LedgerEngine, clock: FrozenClock) -> Callable[[str, int], None]:
    """
    Give a customer ``count`` stamps, moving the clock one day forward each
    time the daily cap is reached. Leaves the clock on a fresh day.
    """

    def _stamp_up(customer_id: str, count: int) -> None:
        for _ in range(count):
            if _issued_today(customer_id) >= ledger.rules.daily_stamp_cap:
                clock.advance(days=1)
            ledger.issue_stamp(operator="tester", customer_id=customer_id)
            clock.advance(minutes=1)
        clock.advance(days=1)

    def _issued_today(customer_id: str) -> int:
        return ledger.find_customer(customer_id=customer_id).stamps_today

    return _stamp_up


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def test_config(store_path: Path) -> ServerConfig:
    cfg = ServerConfig()
    cfg.store.path = str(store_path)
    cfg.auth.api_keys = [TEST_API_KEY]
    cfg.web.static_dir = ""
    return cfg


@pytest.fixture
def app(test_config: ServerConfig, clock: FrozenClock) -> FastAPI:
    return create_app(test_config, clock=clock)


@pytest.fixture
def test_client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"x-api-key": TEST_API_KEY}
