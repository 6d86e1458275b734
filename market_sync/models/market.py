"""Append-only market snapshots; one row per (coin, timestamp, category)."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from market_sync.models.base import Base


class MarketSnapshot(Base):
    __tablename__ = "market_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    coin_id: Mapped[str] = mapped_column(
        ForeignKey("coins.id", ondelete="CASCADE"),
        nullable=False,
    )

    current_price: Mapped[float] = mapped_column(Float, nullable=False)
    market_cap: Mapped[float] = mapped_column(Float, nullable=False)
    total_volume: Mapped[float] = mapped_column(Float, nullable=False)
    market_cap_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)

    price_change_percentage_1h: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_change_percentage_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_change_percentage_7d: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_change_percentage_14d: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_change_percentage_30d: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_change_percentage_200d: Mapped[float | None] = mapped_column(Float, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    data_source: Mapped[str] = mapped_column(String(50), nullable=False, default="coingecko")

    __table_args__ = (
        UniqueConstraint("coin_id", "timestamp", "category", name="uq_market_data_coin_ts_category"),
        Index("idx_market_data_timestamp", "timestamp"),
        Index("idx_market_data_coin_timestamp", "coin_id", "timestamp"),
        Index("idx_market_data_category", "category", "timestamp"),
    )
