"""Shared fixtures: in-memory store, record factory, recorded sleeps."""

import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="market_sync_logs_"))
os.environ.setdefault("SLACK_WEBHOOK_URL", "")

import pytest

from market_sync.core.db import init_db, make_engine, make_session_factory
from market_sync.core.timeutils import utcnow
from market_sync.schemas.normalized import MarketRecord
from market_sync.services.ingestion_service import IngestionService


class SleepRecorder:
    """Stands in for ``asyncio.sleep`` and records every requested delay."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine():
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def ingestion(session_factory):
    return IngestionService(session_factory)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_record():
    def _make(coin_id="degen-base", category="base-ecosystem", timestamp=None, **overrides):
        data = {
            "id": coin_id,
            "symbol": coin_id.split("-")[0][:8],
            "name": coin_id.replace("-", " ").title(),
            "category": category,
            "current_price": 1.0,
            "market_cap": 10_000_000.0,
            "total_volume": 1_000_000.0,
            "price_change_percentage_24h": 0.0,
            "timestamp": timestamp or utcnow(),
        }
        data.update(overrides)
        return MarketRecord(**data)

    return _make
