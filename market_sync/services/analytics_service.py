"""Read-only analytics over the latest snapshot of every coin."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session, aliased

from market_sync.core.config import settings
from market_sync.core.logging import get_logger
from market_sync.core.timeutils import utcnow
from market_sync.models import Coin, DexListing, MarketSnapshot, SyncRun, TokenInfo, TokenTag
from market_sync.schemas.api import (
    MarketAnalysis,
    MarketInsights,
    MarketOverview,
    NotableMover,
    PriceMover,
    TimeframeStats,
    TokenChange,
    VolumeLeader,
)

log = get_logger("analytics_service")

TIMEFRAME_COLUMNS: Dict[str, str] = {
    "1h": "price_change_percentage_1h",
    "24h": "price_change_percentage_24h",
    "7d": "price_change_percentage_7d",
    "14d": "price_change_percentage_14d",
    "30d": "price_change_percentage_30d",
    "200d": "price_change_percentage_200d",
}
OVERVIEW_TIMEFRAMES = ("24h", "7d", "30d")
DEFAULT_MOVER_COUNTS = {"24h": 3, "7d": 1, "30d": 1}


def movement_score(change: float, market_cap: float, volume: float) -> float:
    """Price change weighted by the order of magnitude of market cap and volume."""
    return change * math.log10(max(market_cap, 1)) * math.log10(max(volume, 1))


class AnalyticsService:
    """Leaderboards and aggregates. Never writes.

    "Latest" always means the newest snapshot per coin by timestamp, picked
    with a window function, not the most recently inserted row.
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Latest snapshot helpers
    # -------------------------------------------------------------------------
    def _latest(self, category: Optional[str] = None, at_or_before: Optional[datetime] = None):
        rn = (
            func.row_number()
            .over(
                partition_by=MarketSnapshot.coin_id,
                order_by=(MarketSnapshot.timestamp.desc(), MarketSnapshot.id.desc()),
            )
            .label("rn")
        )
        stmt = select(MarketSnapshot, rn)
        if category:
            stmt = stmt.where(MarketSnapshot.category == category)
        if at_or_before is not None:
            stmt = stmt.where(MarketSnapshot.timestamp <= at_or_before)
        sub = stmt.subquery()
        return aliased(MarketSnapshot, sub), sub.c.rn

    def latest_rows(
        self,
        category: Optional[str] = None,
        at_or_before: Optional[datetime] = None,
    ) -> List[Tuple[MarketSnapshot, str, str]]:
        snap, rn = self._latest(category, at_or_before)
        stmt = (
            select(snap, Coin.symbol, Coin.name)
            .join(Coin, Coin.id == snap.coin_id)
            .where(rn == 1)
            .order_by(snap.market_cap.desc())
        )
        return [(row[0], row[1], row[2]) for row in self.db.execute(stmt).all()]

    def get_latest_snapshots(
        self,
        category: Optional[str] = None,
        symbol: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[int, List[dict]]:
        snap, rn = self._latest(category)
        stmt = select(snap, Coin.symbol, Coin.name).join(Coin, Coin.id == snap.coin_id).where(rn == 1)
        if symbol:
            stmt = stmt.where(Coin.symbol.ilike(f"%{symbol}%"))

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar() or 0
        stmt = stmt.order_by(snap.market_cap.desc()).limit(limit).offset(offset)
        rows = [self._snapshot_dict(s, sym, name) for s, sym, name in self.db.execute(stmt).all()]
        return total, rows

    def get_snapshot(self, coin_id: str) -> Optional[dict]:
        snap, rn = self._latest()
        stmt = (
            select(snap, Coin.symbol, Coin.name)
            .join(Coin, Coin.id == snap.coin_id)
            .where(rn == 1, snap.coin_id == coin_id)
        )
        row = self.db.execute(stmt).first()
        return self._snapshot_dict(*row) if row else None

    @staticmethod
    def _snapshot_dict(snap: MarketSnapshot, symbol: str, name: str) -> dict:
        data = {column: getattr(snap, column) for column in TIMEFRAME_COLUMNS.values()}
        data.update(
            coin_id=snap.coin_id,
            symbol=symbol,
            name=name,
            category=snap.category,
            current_price=snap.current_price,
            market_cap=snap.market_cap,
            total_volume=snap.total_volume,
            market_cap_rank=snap.market_cap_rank,
            timestamp=snap.timestamp,
        )
        return data

    def get_token_detail(self, coin_id: str) -> Tuple[Optional[TokenInfo], List[str], List[DexListing]]:
        info = self.db.get(TokenInfo, coin_id)
        tags = self.db.execute(select(TokenTag.tag).where(TokenTag.token_id == coin_id).order_by(TokenTag.tag))
        listings = self.db.execute(
            select(DexListing).where(DexListing.token_id == coin_id).order_by(DexListing.dex_identifier)
        )
        return info, list(tags.scalars().all()), list(listings.scalars().all())

    def get_all_token_ids(self) -> List[str]:
        stmt = select(MarketSnapshot.coin_id).distinct().order_by(MarketSnapshot.coin_id)
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Market overview
    # -------------------------------------------------------------------------
    def get_market_overview(self, platform: Optional[str] = settings.PLATFORM_ID, top_n: int = 100) -> MarketOverview:
        """Aggregates over the top-N tokens by market cap. ``platform=None`` spans every chain."""
        snap, rn = self._latest()
        top = select(
            snap.market_cap,
            snap.total_volume,
            *(getattr(snap, TIMEFRAME_COLUMNS[tf]) for tf in OVERVIEW_TIMEFRAMES),
        ).where(rn == 1)
        if platform:
            top = top.join(TokenInfo, TokenInfo.id == snap.coin_id).where(TokenInfo.asset_platform_id == platform)
        top = top.order_by(snap.market_cap.desc()).limit(top_n).subquery()

        columns = [
            func.count().label("total_tokens"),
            func.coalesce(func.sum(top.c.market_cap), 0).label("total_market_cap"),
            func.coalesce(func.sum(top.c.total_volume), 0).label("total_volume"),
        ]
        for tf in OVERVIEW_TIMEFRAMES:
            change = top.c[TIMEFRAME_COLUMNS[tf]]
            columns += [
                func.count(case((change > 10, 1))).label(f"strong_{tf}"),
                func.count(case((and_(change > 5, change <= 10), 1))).label(f"moderate_{tf}"),
                func.count(case((change < -10, 1))).label(f"decliners_{tf}"),
                func.coalesce(func.avg(change), 0).label(f"avg_{tf}"),
            ]

        row = self.db.execute(select(*columns)).mappings().one()
        log.debug(f"Market overview data retrieved: {row['total_tokens']} tokens found")
        return MarketOverview(
            total_tokens=row["total_tokens"],
            total_market_cap=row["total_market_cap"],
            total_volume=row["total_volume"],
            timeframes={
                tf: TimeframeStats(
                    strong_gainers=row[f"strong_{tf}"],
                    moderate_gainers=row[f"moderate_{tf}"],
                    strong_decliners=row[f"decliners_{tf}"],
                    average_change=row[f"avg_{tf}"],
                )
                for tf in OVERVIEW_TIMEFRAMES
            },
        )

    # -------------------------------------------------------------------------
    # Notable movers
    # -------------------------------------------------------------------------
    def get_notable_movers(
        self,
        platform: Optional[str] = settings.PLATFORM_ID,
        min_market_cap: float = 5_000_000,
        min_volume: float = 300_000,
        min_change: float = 5.0,
        top_counts: Optional[Dict[str, int]] = None,
    ) -> List[NotableMover]:
        """Top movers per (timeframe, gainer/loser), ranked by absolute movement score."""
        counts = top_counts or DEFAULT_MOVER_COUNTS
        snap, rn = self._latest()
        stmt = (
            select(snap, Coin.symbol, Coin.name)
            .join(Coin, Coin.id == snap.coin_id)
            .where(rn == 1, snap.market_cap >= min_market_cap, snap.total_volume >= min_volume)
        )
        if platform:
            stmt = stmt.join(TokenInfo, TokenInfo.id == snap.coin_id).where(TokenInfo.asset_platform_id == platform)
        rows = self.db.execute(stmt).all()

        buckets: Dict[Tuple[str, str], List[NotableMover]] = defaultdict(list)
        for s, symbol, name in rows:
            for tf in counts:
                change = getattr(s, TIMEFRAME_COLUMNS[tf])
                if change is None or abs(change) < min_change:
                    continue
                movement_type = "gainer" if change > 0 else "loser"
                buckets[(tf, movement_type)].append(
                    NotableMover(
                        coin_id=s.coin_id,
                        symbol=symbol,
                        name=name,
                        timeframe=tf,
                        movement_type=movement_type,
                        price_change=change,
                        current_price=s.current_price,
                        market_cap=s.market_cap,
                        total_volume=s.total_volume,
                        movement_score=movement_score(change, s.market_cap, s.total_volume),
                    )
                )

        movers: List[NotableMover] = []
        for tf, limit in counts.items():
            for movement_type in ("gainer", "loser"):
                ranked = sorted(buckets[(tf, movement_type)], key=lambda m: abs(m.movement_score), reverse=True)
                movers.extend(ranked[:limit])
        log.debug(f"Notable movers found: {len(movers)}")
        return movers

    # -------------------------------------------------------------------------
    # Category analysis
    # -------------------------------------------------------------------------
    def get_market_analysis(
        self,
        timeframe: str = "24h",
        category: Optional[str] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> MarketAnalysis:
        """Volume leaders against each coin's own day-ago snapshot, plus price movers."""
        if timeframe not in TIMEFRAME_COLUMNS:
            raise ValueError(f"Unsupported timeframe: {timeframe}")
        limit = limit or (5 if timeframe == "24h" else 10)
        cutoff = (now or utcnow()) - timedelta(days=1)

        current = self.latest_rows(category)
        baseline = {snap.coin_id: snap for snap, _, _ in self.latest_rows(category, at_or_before=cutoff)}

        leaders: List[VolumeLeader] = []
        for snap, symbol, name in current:
            prev = baseline.get(snap.coin_id)
            if prev is None or prev.id == snap.id or prev.total_volume <= 0:
                continue
            price_change = None
            if prev.current_price > 0:
                price_change = (snap.current_price - prev.current_price) / prev.current_price * 100
            leaders.append(
                VolumeLeader(
                    coin_id=snap.coin_id,
                    symbol=symbol,
                    name=name,
                    total_volume=snap.total_volume,
                    previous_volume=prev.total_volume,
                    volume_change=(snap.total_volume - prev.total_volume) / prev.total_volume * 100,
                    price_change=price_change,
                )
            )
        leaders.sort(key=lambda leader: leader.volume_change, reverse=True)

        column = TIMEFRAME_COLUMNS[timeframe]
        movers = [
            PriceMover(
                coin_id=snap.coin_id,
                symbol=symbol,
                name=name,
                current_price=snap.current_price,
                total_volume=snap.total_volume,
                price_change=getattr(snap, column),
            )
            for snap, symbol, name in current
            if getattr(snap, column) is not None
        ]
        movers.sort(key=lambda mover: abs(mover.price_change), reverse=True)

        return MarketAnalysis(
            category=category,
            timeframe=timeframe,
            volume_leaders=leaders[:limit],
            price_movers=movers[:limit],
        )

    # -------------------------------------------------------------------------
    # Insights & runs
    # -------------------------------------------------------------------------
    def get_market_insights(self, top: int = 5) -> MarketInsights:
        rows = self.latest_rows()
        changes = [
            TokenChange(
                coin_id=snap.coin_id,
                symbol=symbol,
                name=name,
                current_price=snap.current_price,
                price_change_percentage_24h=snap.price_change_percentage_24h,
            )
            for snap, symbol, name in rows
        ]
        gainers = sorted(
            (c for c in changes if (c.price_change_percentage_24h or 0) > 0),
            key=lambda c: c.price_change_percentage_24h,
            reverse=True,
        )
        losers = sorted(
            (c for c in changes if (c.price_change_percentage_24h or 0) < 0),
            key=lambda c: c.price_change_percentage_24h,
        )
        return MarketInsights(tracked_tokens=len(rows), top_gainers=gainers[:top], top_losers=losers[:top])

    def get_recent_runs(self, limit: int = 20, job_name: Optional[str] = None) -> List[SyncRun]:
        stmt = select(SyncRun)
        if job_name:
            stmt = stmt.where(SyncRun.job_name == job_name)
        stmt = stmt.order_by(SyncRun.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_last_run(self, job_name: str = "market_sync") -> Optional[SyncRun]:
        runs = self.get_recent_runs(limit=1, job_name=job_name)
        return runs[0] if runs else None

    def count_snapshots(self) -> int:
        return self.db.execute(select(func.count()).select_from(MarketSnapshot)).scalar() or 0

    def count_enriched(self) -> int:
        return self.db.execute(select(func.count()).select_from(TokenInfo)).scalar() or 0
