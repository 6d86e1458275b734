"""Analytics routes - market overview, notable movers, category leaderboards."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from market_sync.api.deps import get_db
from market_sync.core.config import settings
from market_sync.schemas.api import MarketAnalysis, MarketInsights, MarketOverview, NotableMover
from market_sync.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _platform_filter(platform: str, all_platforms: bool) -> Optional[str]:
    return None if all_platforms else platform


@router.get("/overview", response_model=MarketOverview)
def market_overview(
    platform: str = Query(settings.PLATFORM_ID, description="Only tokens whose enrichment reports this platform"),
    all_platforms: bool = Query(False, description="Ignore the platform filter"),
    top_n: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Aggregates over the top-N tokens by market cap, as of each token's latest snapshot."""
    return AnalyticsService(db).get_market_overview(
        platform=_platform_filter(platform, all_platforms),
        top_n=top_n,
    )


@router.get("/movers", response_model=list[NotableMover])
def notable_movers(
    platform: str = Query(settings.PLATFORM_ID),
    all_platforms: bool = Query(False),
    min_market_cap: float = Query(5_000_000, ge=0),
    min_volume: float = Query(300_000, ge=0),
    min_change: float = Query(5.0, ge=0),
    db: Session = Depends(get_db),
):
    """Top movers per timeframe and direction ranked by movement score."""
    return AnalyticsService(db).get_notable_movers(
        platform=_platform_filter(platform, all_platforms),
        min_market_cap=min_market_cap,
        min_volume=min_volume,
        min_change=min_change,
    )


@router.get("/insights", response_model=MarketInsights)
def market_insights(db: Session = Depends(get_db)):
    """Top 24h gainers and losers."""
    return AnalyticsService(db).get_market_insights()


@router.get("/categories/{category}", response_model=MarketAnalysis)
def category_analysis(
    category: str,
    timeframe: Literal["1h", "24h", "7d", "14d", "30d", "200d"] = Query("24h"),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Defaults to 5 for 24h, 10 otherwise"),
    db: Session = Depends(get_db),
):
    """Volume leaders against each token's day-ago snapshot, and price movers for the timeframe."""
    return AnalyticsService(db).get_market_analysis(timeframe=timeframe, category=category, limit=limit)
