"""Atomic batch writes of market snapshots and retention cleanup."""

from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from market_sync.core.config import settings
from market_sync.core.errors import StorageError
from market_sync.core.logging import get_logger
from market_sync.core.timeutils import days_ago
from market_sync.models import Coin, CoinCategory, MarketSnapshot, TokenCategory
from market_sync.schemas.normalized import MarketRecord

log = get_logger("ingestion_service")


def category_display_name(category_id: str) -> str:
    """``base-meme-coins`` -> ``Base Meme Coins``."""
    return " ".join(part.capitalize() for part in category_id.split("-") if part)


class IngestionService:
    """Sole writer of coins, coin-category links and market snapshots.

    Every ``store_market_data`` call is one transaction: either all rows of
    the batch land or none do.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def store_market_data(self, records: List[MarketRecord]) -> int:
        if not records:
            return 0

        categories: Dict[str, dict] = {}
        for rec in records:
            categories.setdefault(
                rec.category,
                {"id": rec.category, "name": category_display_name(rec.category), "description": None},
            )

        try:
            with self.session_factory() as db, db.begin():
                db.execute(
                    insert(Coin.__table__).on_conflict_do_nothing(),
                    [rec.coin_row() for rec in records],
                )
                db.execute(
                    insert(TokenCategory.__table__).on_conflict_do_nothing(),
                    list(categories.values()),
                )
                db.execute(
                    insert(CoinCategory.__table__).on_conflict_do_nothing(),
                    [{"coin_id": rec.id, "category_id": rec.category} for rec in records],
                )
                db.execute(
                    insert(MarketSnapshot.__table__).on_conflict_do_nothing(),
                    [rec.snapshot_row() for rec in records],
                )
        except SQLAlchemyError as exc:
            log.error(f"Failed to store {len(records)} market records: {exc}")
            raise StorageError(f"Market data batch rolled back: {exc}") from exc

        log.info(f"Stored {len(records)} market records")
        return len(records)

    def cleanup_old_data(self, retention_days: Optional[int] = None) -> int:
        """Delete snapshots strictly older than the retention horizon."""
        days = settings.RETENTION_DAYS if retention_days is None else retention_days
        cutoff = days_ago(days)
        try:
            with self.session_factory() as db, db.begin():
                result = db.execute(delete(MarketSnapshot).where(MarketSnapshot.timestamp < cutoff))
                removed = result.rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError(f"Retention cleanup failed: {exc}") from exc

        log.info(f"Cleaned up {removed} market records older than {days} days")
        return removed

    def get_all_token_ids(self) -> List[str]:
        with self.session_factory() as db:
            stmt = select(MarketSnapshot.coin_id).distinct().order_by(MarketSnapshot.coin_id)
            return list(db.execute(stmt).scalars().all())

    def add_category(self, category_id: str, name: Optional[str] = None, description: Optional[str] = None) -> None:
        """Create or update a category."""
        row = {"id": category_id, "name": name or category_display_name(category_id), "description": description}
        stmt = insert(TokenCategory).values(row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TokenCategory.id],
            set_={"name": stmt.excluded.name, "description": stmt.excluded.description},
        )
        with self.session_factory() as db, db.begin():
            db.execute(stmt)

    def assign_category(self, coin_id: str, category_id: str) -> None:
        try:
            with self.session_factory() as db, db.begin():
                db.execute(
                    insert(CoinCategory)
                    .values(coin_id=coin_id, category_id=category_id)
                    .on_conflict_do_nothing()
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"Cannot assign {coin_id} to {category_id}: {exc}") from exc
