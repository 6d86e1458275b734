"""Latest-snapshot analytics tests"""

from datetime import timedelta

import pytest

from market_sync.core.timeutils import utcnow
from market_sync.models import TokenInfo
from market_sync.services.analytics_service import AnalyticsService, movement_score


@pytest.fixture
def analytics(session_factory):
    with session_factory() as db:
        yield AnalyticsService(db)


def _set_platform(session_factory, coin_id, platform="base"):
    with session_factory() as db, db.begin():
        db.add(TokenInfo(id=coin_id, symbol=coin_id, name=coin_id, asset_platform_id=platform))


class TestLatestSnapshot:
    """Queries pick the newest timestamp per coin, never arrival order"""

    def test_latest_by_timestamp_not_insertion(self, ingestion, analytics, make_record):
        now = utcnow()
        ingestion.store_market_data([make_record("alpha", timestamp=now, current_price=2.0)])
        ingestion.store_market_data([make_record("alpha", timestamp=now - timedelta(hours=1), current_price=1.0)])

        snapshot = analytics.get_snapshot("alpha")
        assert snapshot["current_price"] == 2.0
        assert snapshot["timestamp"] == now

    def test_latest_snapshots_listing(self, ingestion, analytics, make_record):
        now = utcnow()
        ingestion.store_market_data(
            [
                make_record("alpha", timestamp=now - timedelta(hours=2), market_cap=1e6),
                make_record("alpha", timestamp=now, market_cap=3e6),
                make_record("bravo", timestamp=now, market_cap=2e6),
            ]
        )

        total, rows = analytics.get_latest_snapshots()
        assert total == 2
        assert [row["coin_id"] for row in rows] == ["alpha", "bravo"]
        assert rows[0]["market_cap"] == 3e6

        total, rows = analytics.get_latest_snapshots(symbol="brav")
        assert total == 1

    def test_unknown_coin(self, analytics):
        assert analytics.get_snapshot("missing") is None


class TestMovementScore:
    """Test notable mover scoring"""

    def test_score_formula(self):
        assert movement_score(10.0, 1e6, 1e4) == pytest.approx(10.0 * 6 * 4)
        assert movement_score(-5.0, 0.5, 0) == 0

    def test_higher_market_cap_ranks_first(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record("small", market_cap=6e6, total_volume=5e5, price_change_percentage_24h=20.0),
                make_record("large", market_cap=6e8, total_volume=5e5, price_change_percentage_24h=20.0),
                make_record("mid", market_cap=6e7, total_volume=5e5, price_change_percentage_24h=20.0),
                make_record("fourth", market_cap=5e7, total_volume=5e5, price_change_percentage_24h=19.0),
            ]
        )

        movers = analytics.get_notable_movers(platform=None)
        gainers_24h = [m for m in movers if m.timeframe == "24h" and m.movement_type == "gainer"]
        assert [m.coin_id for m in gainers_24h] == ["large", "mid", "fourth"]

    def test_losers_ranked_by_absolute_score(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record("drop-small", market_cap=6e6, total_volume=5e5, price_change_percentage_24h=-30.0),
                make_record("drop-big", market_cap=6e9, total_volume=5e7, price_change_percentage_24h=-30.0),
            ]
        )

        losers = [m for m in analytics.get_notable_movers(platform=None) if m.movement_type == "loser"]
        assert [m.coin_id for m in losers] == ["drop-big", "drop-small"]
        assert losers[0].movement_score < 0

    def test_floors_exclude_small_and_flat_coins(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record("tiny-cap", market_cap=4e6, total_volume=5e5, price_change_percentage_24h=50.0),
                make_record("thin-volume", market_cap=6e7, total_volume=2e5, price_change_percentage_24h=50.0),
                make_record("flat", market_cap=6e7, total_volume=5e5, price_change_percentage_24h=4.9),
                make_record("mover", market_cap=6e7, total_volume=5e5, price_change_percentage_24h=5.0),
            ]
        )

        assert [m.coin_id for m in analytics.get_notable_movers(platform=None)] == ["mover"]

    def test_one_mover_for_7d_and_30d(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record(f"coin-{i}", market_cap=1e7 * (i + 1), total_volume=1e6, price_change_percentage_7d=10.0, price_change_percentage_30d=-20.0)
                for i in range(4)
            ]
        )

        movers = analytics.get_notable_movers(platform=None)
        assert len([m for m in movers if m.timeframe == "7d"]) == 1
        assert len([m for m in movers if m.timeframe == "30d"]) == 1
        assert [m for m in movers if m.timeframe == "7d"][0].coin_id == "coin-3"

    def test_platform_filter(self, ingestion, analytics, session_factory, make_record):
        ingestion.store_market_data(
            [
                make_record("native", market_cap=6e7, total_volume=5e5, price_change_percentage_24h=12.0),
                make_record("bridged", market_cap=6e8, total_volume=5e5, price_change_percentage_24h=12.0),
            ]
        )
        _set_platform(session_factory, "native", "base")
        _set_platform(session_factory, "bridged", "ethereum")

        assert [m.coin_id for m in analytics.get_notable_movers(platform="base")] == ["native"]
        assert [m.coin_id for m in analytics.get_notable_movers()] == ["native"]
        assert {m.coin_id for m in analytics.get_notable_movers(platform=None)} == {"native", "bridged"}


class TestOverview:
    """Test market overview aggregates"""

    def test_tiers_and_totals(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record("a", market_cap=4e6, total_volume=1e5, price_change_percentage_24h=15.0, price_change_percentage_7d=1.0),
                make_record("b", market_cap=3e6, total_volume=1e5, price_change_percentage_24h=7.0, price_change_percentage_7d=-12.0),
                make_record("c", market_cap=2e6, total_volume=1e5, price_change_percentage_24h=-11.0),
                make_record("d", market_cap=1e6, total_volume=1e5, price_change_percentage_24h=10.0),
            ]
        )

        overview = analytics.get_market_overview(platform=None)
        assert overview.total_tokens == 4
        assert overview.total_market_cap == pytest.approx(1e7)
        assert overview.total_volume == pytest.approx(4e5)
        day = overview.timeframes["24h"]
        assert day.strong_gainers == 1
        assert day.moderate_gainers == 2
        assert day.strong_decliners == 1
        assert day.average_change == pytest.approx((15 + 7 - 11 + 10) / 4)
        assert overview.timeframes["7d"].strong_decliners == 1

    def test_top_n_limits_to_largest(self, ingestion, analytics, make_record):
        ingestion.store_market_data([make_record(f"coin-{i}", market_cap=float(i + 1)) for i in range(5)])
        overview = analytics.get_market_overview(platform=None, top_n=2)
        assert overview.total_tokens == 2
        assert overview.total_market_cap == pytest.approx(9.0)

    def test_uses_latest_snapshot_only(self, ingestion, analytics, make_record):
        now = utcnow()
        ingestion.store_market_data(
            [
                make_record("a", timestamp=now - timedelta(hours=1), market_cap=1e9),
                make_record("a", timestamp=now, market_cap=1e6),
            ]
        )
        overview = analytics.get_market_overview(platform=None)
        assert overview.total_tokens == 1
        assert overview.total_market_cap == pytest.approx(1e6)

    def test_restricted_to_platform_by_default(self, ingestion, analytics, session_factory, make_record):
        ingestion.store_market_data(
            [
                make_record("native", market_cap=4e6, price_change_percentage_24h=12.0),
                make_record("bridged", market_cap=8e6, price_change_percentage_24h=-12.0),
                make_record("unenriched", market_cap=1e6),
            ]
        )
        _set_platform(session_factory, "native", "base")
        _set_platform(session_factory, "bridged", "ethereum")

        overview = analytics.get_market_overview()
        assert overview.total_tokens == 1
        assert overview.total_market_cap == pytest.approx(4e6)
        assert overview.timeframes["24h"].strong_gainers == 1
        assert overview.timeframes["24h"].strong_decliners == 0

        assert analytics.get_market_overview(platform="ethereum").total_tokens == 1
        assert analytics.get_market_overview(platform=None).total_tokens == 3

    def test_empty_store(self, analytics):
        overview = analytics.get_market_overview(platform=None)
        assert overview.total_tokens == 0
        assert overview.total_market_cap == 0


class TestMarketAnalysis:
    """Test volume leaders and price movers"""

    def test_volume_leaders_use_day_ago_baseline(self, ingestion, analytics, make_record):
        now = utcnow()
        ingestion.store_market_data(
            [
                make_record("alpha", timestamp=now - timedelta(days=2), total_volume=100.0, current_price=1.0),
                make_record("alpha", timestamp=now, total_volume=300.0, current_price=1.5),
                make_record("bravo", timestamp=now - timedelta(days=1, hours=1), total_volume=100.0),
                make_record("bravo", timestamp=now, total_volume=150.0),
                make_record("newcomer", timestamp=now, total_volume=1e9),
            ]
        )

        analysis = analytics.get_market_analysis("24h", category="base-ecosystem", now=now)
        assert [leader.coin_id for leader in analysis.volume_leaders] == ["alpha", "bravo"]
        assert analysis.volume_leaders[0].volume_change == pytest.approx(200.0)
        assert analysis.volume_leaders[0].price_change == pytest.approx(50.0)

    def test_price_movers_by_absolute_change(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record("up", price_change_percentage_24h=8.0),
                make_record("down", price_change_percentage_24h=-20.0),
                make_record("flat", price_change_percentage_24h=0.5),
            ]
        )
        analysis = analytics.get_market_analysis("24h")
        assert [m.coin_id for m in analysis.price_movers] == ["down", "up", "flat"]

    def test_default_limits(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [make_record(f"coin-{i}", price_change_percentage_24h=float(i), price_change_percentage_7d=float(i)) for i in range(12)]
        )
        assert len(analytics.get_market_analysis("24h").price_movers) == 5
        assert len(analytics.get_market_analysis("7d").price_movers) == 10
        assert len(analytics.get_market_analysis("7d", limit=3).price_movers) == 3

    def test_category_filter(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [
                make_record("eco", category="base-ecosystem", price_change_percentage_24h=3.0),
                make_record("meme", category="base-meme-coins", price_change_percentage_24h=9.0),
            ]
        )
        analysis = analytics.get_market_analysis("24h", category="base-meme-coins")
        assert [m.coin_id for m in analysis.price_movers] == ["meme"]

    def test_unknown_timeframe(self, analytics):
        with pytest.raises(ValueError):
            analytics.get_market_analysis("5m")


class TestInsights:
    """Test top gainers and losers"""

    def test_gainers_and_losers(self, ingestion, analytics, make_record):
        ingestion.store_market_data(
            [make_record(f"coin-{i}", price_change_percentage_24h=float(i - 6)) for i in range(13)]
        )
        insights = analytics.get_market_insights()
        assert insights.tracked_tokens == 13
        assert [c.price_change_percentage_24h for c in insights.top_gainers] == [6.0, 5.0, 4.0, 3.0, 2.0]
        assert [c.price_change_percentage_24h for c in insights.top_losers] == [-6.0, -5.0, -4.0, -3.0, -2.0]
