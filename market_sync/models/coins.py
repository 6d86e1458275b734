"""Dimension tables: coins, categories and the many-to-many link between them."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from market_sync.models.base import Base


class Coin(Base):
    """Static identity of a tracked token. Created on first sighting, never updated."""

    __tablename__ = "coins"

    id: Mapped[str] = mapped_column(String(200), primary_key=True, comment="Upstream coin identifier (e.g. 'degen-base')")
    symbol: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )


class TokenCategory(Base):
    __tablename__ = "token_categories"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
    )


class CoinCategory(Base):
    __tablename__ = "coin_categories"

    coin_id: Mapped[str] = mapped_column(
        ForeignKey("coins.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category_id: Mapped[str] = mapped_column(
        ForeignKey("token_categories.id", ondelete="CASCADE"),
        primary_key=True,
    )

    added_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )
