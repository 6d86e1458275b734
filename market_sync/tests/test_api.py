"""API endpoint tests"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from market_sync.api.deps import get_db
from market_sync.core.cache import ExpiringCache
from market_sync.core.registry import ServiceRegistry
from market_sync.core.timeutils import utcnow
from market_sync.ingestion.base import BaseSource
from market_sync.ingestion.request_queue import RequestQueue
from market_sync.main import app
from market_sync.models import TokenInfo
from market_sync.schemas.coingecko import PriceQuote
from market_sync.services.quote_service import QuoteService
from market_sync.services.sync_service import MarketSyncService


class StaticSource(BaseSource):
    name = "static"

    def __init__(self, make_record):
        self.make_record = make_record

    async def fetch(self, category):
        return [self.make_record("fresh-coin", category=category, price_change_percentage_24h=9.0)]


class FakeQuoteClient:
    async def get_simple_price(self, coin_id):
        if coin_id == "unknown":
            return None
        return PriceQuote(id=coin_id, current_price=0.02)

    async def get_trending(self):
        return []

    async def search(self, query):
        return []


class TestAPI:
    """Test API endpoints"""

    @pytest.fixture
    def client(self, session_factory, ingestion, make_record, sleep):
        """Create test client backed by the in-memory store"""

        def override_get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        registry = ServiceRegistry()
        registry.register(
            MarketSyncService(
                StaticSource(make_record),
                ingestion,
                categories=["base-ecosystem"],
                max_retries=1,
                sleep=sleep,
            )
        )
        registry.register(
            QuoteService(FakeQuoteClient(), cache=ExpiringCache(ttl=60), queue=RequestQueue(min_interval=0))
        )

        app.dependency_overrides[get_db] = override_get_db
        app.state.registry = registry
        yield TestClient(app)
        app.dependency_overrides.clear()
        del app.state.registry

    @pytest.fixture
    def seeded(self, ingestion, make_record):
        now = utcnow()
        ingestion.store_market_data(
            [
                make_record("degen-base", timestamp=now - timedelta(hours=1), current_price=1.0),
                make_record("degen-base", timestamp=now, current_price=1.2, price_change_percentage_24h=20.0),
                make_record("brett", timestamp=now, market_cap=2e7, price_change_percentage_24h=-15.0),
            ]
        )

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "ok"
        assert response.json()["last_sync_status"] is None

    def test_not_ready_before_first_sync(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 503
        body = response.json()
        assert body["ready"] is False
        assert body["services"]["market_data"] is True
        assert body["services"]["token_info"] is False

    def test_ready_after_data(self, client, seeded):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["tracked_tokens"] == 2

    def test_get_tokens(self, client, seeded):
        response = client.get("/data/tokens?limit=10")
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 2
        assert body["data"][0]["coin_id"] == "brett"
        assert "request_id" in body

    def test_get_token_detail(self, client, seeded):
        response = client.get("/data/tokens/degen-base")
        assert response.status_code == 200
        body = response.json()
        assert body["snapshot"]["current_price"] == 1.2
        assert body["info"] is None
        assert body["dex_listings"] == []

    def test_unknown_token_returns_404(self, client):
        response = client.get("/data/tokens/missing")
        assert response.status_code == 404

    def test_token_ids(self, client, seeded):
        response = client.get("/data/token-ids")
        assert response.json() == {"count": 2, "token_ids": ["brett", "degen-base"]}

    def test_overview(self, client, seeded):
        response = client.get("/analytics/overview?all_platforms=true")
        assert response.status_code == 200
        body = response.json()
        assert body["total_tokens"] == 2
        assert body["timeframes"]["24h"]["strong_gainers"] == 1
        assert body["timeframes"]["24h"]["strong_decliners"] == 1

    def test_movers(self, client, seeded):
        response = client.get("/analytics/movers?all_platforms=true")
        assert response.status_code == 200
        assert {m["coin_id"] for m in response.json()} == {"degen-base", "brett"}

    def test_analytics_default_to_configured_platform(self, client, seeded, session_factory):
        with session_factory() as db, db.begin():
            db.add(TokenInfo(id="degen-base", symbol="degen", name="Degen", asset_platform_id="base"))
            db.add(TokenInfo(id="brett", symbol="brett", name="Brett", asset_platform_id="ethereum"))

        overview = client.get("/analytics/overview").json()
        assert overview["total_tokens"] == 1
        assert overview["timeframes"]["24h"]["strong_decliners"] == 0
        assert [m["coin_id"] for m in client.get("/analytics/movers").json()] == ["degen-base"]
        assert client.get("/analytics/overview?platform=ethereum").json()["total_tokens"] == 1

    def test_insights(self, client, seeded):
        body = client.get("/analytics/insights").json()
        assert body["top_gainers"][0]["coin_id"] == "degen-base"
        assert body["top_losers"][0]["coin_id"] == "brett"

    def test_category_analysis(self, client, seeded):
        response = client.get("/analytics/categories/base-ecosystem?timeframe=24h")
        assert response.status_code == 200
        assert response.json()["price_movers"][0]["coin_id"] == "degen-base"

    def test_invalid_timeframe(self, client):
        response = client.get("/analytics/categories/base-ecosystem?timeframe=5m")
        assert response.status_code == 422

    def test_trigger_sync_and_stats(self, client):
        response = client.post("/sync/run")
        assert response.status_code == 200
        assert response.json() == {"success": True, "records_processed": 1, "error": None}

        stats = client.get("/stats").json()
        assert stats["runs"][0]["job_name"] == "market_sync"
        assert stats["runs"][0]["status"] == "success"
        assert stats["snapshot_count"] == 1

        health = client.get("/health").json()
        assert health["last_sync_status"] == "success"

    def test_cleanup(self, client, ingestion, make_record):
        ingestion.store_market_data([make_record("old", timestamp=utcnow() - timedelta(days=45))])
        response = client.post("/sync/cleanup")
        assert response.json() == {"removed": 1, "retention_days": 30}

    def test_enrich_without_service_returns_503(self, client):
        response = client.post("/sync/enrich")
        assert response.status_code == 503

    def test_price_quote(self, client):
        response = client.get("/quotes/price/degen-base")
        assert response.status_code == 200
        assert response.json()["current_price"] == 0.02

    def test_price_quote_not_found(self, client):
        response = client.get("/quotes/price/unknown")
        assert response.status_code == 404

    def test_search_requires_query(self, client):
        response = client.get("/quotes/search")
        assert response.status_code == 422

    def test_invalid_endpoint(self, client):
        response = client.get("/invalid")
        assert response.status_code == 404
