import uuid
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class SnapshotOut(BaseModel):
    """Latest market snapshot for one coin."""

    coin_id: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    category: str
    current_price: float
    market_cap: float
    total_volume: float
    market_cap_rank: Optional[int] = None
    price_change_percentage_1h: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    price_change_percentage_7d: Optional[float] = None
    price_change_percentage_14d: Optional[float] = None
    price_change_percentage_30d: Optional[float] = None
    price_change_percentage_200d: Optional[float] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class DataResponse(BaseModel):
    request_id: str
    api_latency_ms: int
    total_count: int
    data: list[SnapshotOut]


class DexListingOut(BaseModel):
    dex_identifier: str
    timestamp: str
    base_token_address: Optional[str] = None
    target_token_address: Optional[str] = None
    trust_score: Optional[str] = None
    bid_ask_spread_percentage: Optional[float] = None
    last_traded_at: Optional[str] = None
    is_anomaly: bool = False
    trade_url: Optional[str] = None
    target_token_id: Optional[str] = None

    class Config:
        from_attributes = True


class TokenInfoOut(BaseModel):
    id: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    asset_platform_id: Optional[str] = None
    contract_address: Optional[str] = None
    decimals: Optional[int] = None
    description: Optional[str] = None
    homepage_url: Optional[str] = None
    token_explorer_url: Optional[str] = None
    twitter_url: Optional[str] = None
    telegram_url: Optional[str] = None
    github_url: Optional[str] = None
    image_small_url: Optional[str] = None
    market_cap_rank: Optional[int] = None
    twitter_followers: Optional[int] = None
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenDetailResponse(BaseModel):
    snapshot: SnapshotOut
    info: Optional[TokenInfoOut] = None
    tags: list[str] = Field(default_factory=list)
    dex_listings: list[DexListingOut] = Field(default_factory=list)


class TimeframeStats(BaseModel):
    strong_gainers: int = 0
    moderate_gainers: int = 0
    strong_decliners: int = 0
    average_change: Optional[float] = None


class MarketOverview(BaseModel):
    total_tokens: int
    total_market_cap: float
    total_volume: float
    timeframes: Dict[str, TimeframeStats]


class NotableMover(BaseModel):
    coin_id: str
    symbol: str
    name: str
    timeframe: str
    movement_type: str  # gainer | loser
    price_change: float
    current_price: float
    market_cap: float
    total_volume: float
    movement_score: float


class VolumeLeader(BaseModel):
    coin_id: str
    symbol: str
    name: str
    total_volume: float
    previous_volume: float
    volume_change: float
    price_change: Optional[float] = None


class PriceMover(BaseModel):
    coin_id: str
    symbol: str
    name: str
    current_price: float
    total_volume: float
    price_change: float


class MarketAnalysis(BaseModel):
    category: Optional[str] = None
    timeframe: str
    volume_leaders: list[VolumeLeader]
    price_movers: list[PriceMover]


class TokenChange(BaseModel):
    coin_id: str
    symbol: str
    name: str
    current_price: float
    price_change_percentage_24h: Optional[float] = None


class MarketInsights(BaseModel):
    tracked_tokens: int
    top_gainers: list[TokenChange]
    top_losers: list[TokenChange]


class HealthResponse(BaseModel):
    database: str
    last_sync_status: str | None
    last_sync_at: datetime | None = None


class ReadinessResponse(BaseModel):
    ready: bool
    tracked_tokens: int
    services: Dict[str, bool]


class SyncRunOut(BaseModel):
    run_id: uuid.UUID
    job_name: str
    status: str
    attempts: int
    records_processed: int
    error_message: str | None = None
    started_at: datetime
    ended_at: datetime | None

    class Config:
        from_attributes = True


class StatsResponse(BaseModel):
    runs: list[SyncRunOut]
    snapshot_count: int
    tracked_tokens: int
    enriched_tokens: int


class SyncTriggerResponse(BaseModel):
    success: bool
    records_processed: int
    error: str | None = None


class EnrichmentReport(BaseModel):
    requested: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    rate_limited: int = 0
    failed_ids: list[str] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    removed: int
    retention_days: int
