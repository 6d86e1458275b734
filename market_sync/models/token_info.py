"""Enrichment tables written by the token info processor.

Absence of a ``token_info`` row means the coin has not been enriched yet,
not that upstream has no data for it.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from market_sync.models.base import Base


class TokenInfo(Base):
    __tablename__ = "token_info"

    id: Mapped[str] = mapped_column(
        ForeignKey("coins.id", ondelete="CASCADE"),
        primary_key=True,
    )
    symbol: Mapped[str | None] = mapped_column(String(50))
    name: Mapped[str | None] = mapped_column(String(200))
    asset_platform_id: Mapped[str | None] = mapped_column(String(100), index=True)
    contract_address: Mapped[str | None] = mapped_column(String(100))
    decimals: Mapped[int | None] = mapped_column(Integer)

    public_notice: Mapped[str | None] = mapped_column(Text)
    additional_notices: Mapped[str | None] = mapped_column(Text, comment="JSON encoded list")
    description: Mapped[str | None] = mapped_column(Text)

    homepage_url: Mapped[str | None] = mapped_column(String)
    deployer_explorer_url: Mapped[str | None] = mapped_column(String)
    token_explorer_url: Mapped[str | None] = mapped_column(String)
    chat_url: Mapped[str | None] = mapped_column(String)
    announcement_url: Mapped[str | None] = mapped_column(String)
    snapshot_url: Mapped[str | None] = mapped_column(String)
    twitter_url: Mapped[str | None] = mapped_column(String)
    telegram_url: Mapped[str | None] = mapped_column(String)
    subreddit_url: Mapped[str | None] = mapped_column(String)
    github_url: Mapped[str | None] = mapped_column(String)
    bitbucket_url: Mapped[str | None] = mapped_column(String)

    image_thumb_url: Mapped[str | None] = mapped_column(String)
    image_small_url: Mapped[str | None] = mapped_column(String)
    image_large_url: Mapped[str | None] = mapped_column(String)

    country_origin: Mapped[str | None] = mapped_column(String(100))
    genesis_date: Mapped[str | None] = mapped_column(String(20))
    watchlist_portfolio_users: Mapped[int | None] = mapped_column(Integer)
    market_cap_rank: Mapped[int | None] = mapped_column(Integer)
    twitter_followers: Mapped[int | None] = mapped_column(Integer)
    telegram_channel_users: Mapped[int | None] = mapped_column(Integer)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )


class TokenTag(Base):
    """Upstream category tags reported on the coin detail page."""

    __tablename__ = "token_tags"

    token_id: Mapped[str] = mapped_column(
        ForeignKey("token_info.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag: Mapped[str] = mapped_column(String(200), primary_key=True)


class DexListing(Base):
    __tablename__ = "dex_listings"

    token_id: Mapped[str] = mapped_column(
        ForeignKey("token_info.id", ondelete="CASCADE"),
        primary_key=True,
    )
    dex_identifier: Mapped[str] = mapped_column(String(100), primary_key=True)
    timestamp: Mapped[str] = mapped_column(String(40), primary_key=True, default="", comment="Upstream ticker timestamp")

    base_token_address: Mapped[str | None] = mapped_column(String)
    target_token_address: Mapped[str | None] = mapped_column(String)
    trust_score: Mapped[str | None] = mapped_column(String(20))
    bid_ask_spread_percentage: Mapped[float | None] = mapped_column(Float)
    last_traded_at: Mapped[str | None] = mapped_column(String(40))
    last_fetch_at: Mapped[str | None] = mapped_column(String(40))
    is_anomaly: Mapped[bool] = mapped_column(Boolean, default=False)
    trade_url: Mapped[str | None] = mapped_column(String)
    target_token_id: Mapped[str | None] = mapped_column(String(200))
