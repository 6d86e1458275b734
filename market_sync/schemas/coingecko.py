"""Upstream CoinGecko response schemas.

Only the fields the pipeline reads are declared; everything else in the
payload is ignored.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Upstream(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CoinMarketItem(_Upstream):
    """One row of ``/coins/markets``."""

    id: str
    symbol: str
    name: str
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    market_cap_rank: Optional[int] = None
    price_change_percentage_24h: Optional[float] = None
    price_change_percentage_1h_in_currency: Optional[float] = None
    price_change_percentage_24h_in_currency: Optional[float] = None
    price_change_percentage_7d_in_currency: Optional[float] = None
    price_change_percentage_14d_in_currency: Optional[float] = None
    price_change_percentage_30d_in_currency: Optional[float] = None
    price_change_percentage_200d_in_currency: Optional[float] = None


CoinMarketPage = TypeAdapter(List[CoinMarketItem])


class ReposUrl(_Upstream):
    github: List[Optional[str]] = Field(default_factory=list)
    bitbucket: List[Optional[str]] = Field(default_factory=list)


class CoinLinks(_Upstream):
    homepage: List[Optional[str]] = Field(default_factory=list)
    blockchain_site: List[Optional[str]] = Field(default_factory=list)
    chat_url: List[Optional[str]] = Field(default_factory=list)
    announcement_url: List[Optional[str]] = Field(default_factory=list)
    snapshot_url: Optional[str] = None
    twitter_screen_name: Optional[str] = None
    telegram_channel_identifier: Optional[str] = None
    subreddit_url: Optional[str] = None
    repos_url: ReposUrl = Field(default_factory=ReposUrl)


class CoinImage(_Upstream):
    thumb: Optional[str] = None
    small: Optional[str] = None
    large: Optional[str] = None


class CommunityData(_Upstream):
    twitter_followers: Optional[int] = None
    telegram_channel_user_count: Optional[int] = None


class DetailPlatform(_Upstream):
    decimal_place: Optional[int] = None
    contract_address: Optional[str] = None


class TickerMarket(_Upstream):
    name: Optional[str] = None
    identifier: Optional[str] = None


class Ticker(_Upstream):
    base: Optional[str] = None
    target: Optional[str] = None
    market: Optional[TickerMarket] = None
    trust_score: Optional[str] = None
    bid_ask_spread_percentage: Optional[float] = None
    timestamp: Optional[str] = None
    last_traded_at: Optional[str] = None
    last_fetch_at: Optional[str] = None
    is_anomaly: bool = False
    is_stale: bool = False
    trade_url: Optional[str] = None
    target_coin_id: Optional[str] = None


class CoinDetail(_Upstream):
    """Payload of ``/coins/{id}`` (links, platforms, tickers, community stats)."""

    id: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    asset_platform_id: Optional[str] = None
    platforms: Dict[str, Optional[str]] = Field(default_factory=dict)
    detail_platforms: Dict[str, DetailPlatform] = Field(default_factory=dict)
    categories: List[Optional[str]] = Field(default_factory=list)
    public_notice: Optional[str] = None
    additional_notices: List[Any] = Field(default_factory=list)
    description: Dict[str, Optional[str]] = Field(default_factory=dict)
    links: CoinLinks = Field(default_factory=CoinLinks)
    image: CoinImage = Field(default_factory=CoinImage)
    country_origin: Optional[str] = None
    genesis_date: Optional[str] = None
    watchlist_portfolio_users: Optional[int] = None
    market_cap_rank: Optional[int] = None
    community_data: CommunityData = Field(default_factory=CommunityData)
    tickers: List[Ticker] = Field(default_factory=list)


class PriceQuote(BaseModel):
    """Normalized ``/simple/price`` entry for one coin."""

    id: str
    current_price: float
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    last_updated_at: Optional[int] = None


class TrendingItem(_Upstream):
    id: str
    name: str
    symbol: str
    market_cap_rank: Optional[int] = None
    price_btc: Optional[float] = None


class TrendingCoin(_Upstream):
    item: TrendingItem


class SearchResult(_Upstream):
    id: str
    name: str
    symbol: str
    market_cap_rank: Optional[int] = None
    thumb: Optional[str] = None
    large: Optional[str] = None


TrendingList = TypeAdapter(List[TrendingCoin])
SearchResultList = TypeAdapter(List[SearchResult])
