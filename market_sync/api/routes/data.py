"""Data routes - latest snapshots and token details with request metadata."""

import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from market_sync.api.deps import get_db
from market_sync.schemas.api import (
    DataResponse,
    DexListingOut,
    SnapshotOut,
    TokenDetailResponse,
    TokenInfoOut,
)
from market_sync.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/tokens", response_model=DataResponse)
def get_tokens(
    category: Optional[str] = Query(None, description="Filter by category id"),
    symbol: Optional[str] = Query(None, description="Filter by symbol (case-insensitive partial match)"),
    limit: int = Query(50, ge=1, le=500, description="Number of records to return (max 500)"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
):
    """
    Latest snapshot per token, ordered by market cap.

    Includes request metadata (request_id, latency_ms).
    """
    start = time.perf_counter()
    request_id = str(uuid.uuid4())

    total, rows = AnalyticsService(db).get_latest_snapshots(
        category=category,
        symbol=symbol,
        limit=limit,
        offset=offset,
    )

    latency_ms = int((time.perf_counter() - start) * 1000)
    return DataResponse(
        request_id=request_id,
        api_latency_ms=latency_ms,
        total_count=total,
        data=[SnapshotOut(**row) for row in rows],
    )


@router.get("/token-ids")
def get_token_ids(db: Session = Depends(get_db)):
    """All coin ids present in stored snapshots."""
    ids = AnalyticsService(db).get_all_token_ids()
    return {"count": len(ids), "token_ids": ids}


@router.get("/tokens/{coin_id}", response_model=TokenDetailResponse)
def get_token(coin_id: str, db: Session = Depends(get_db)):
    """Latest snapshot plus enrichment data (info, tags, DEX venues) for one coin."""
    service = AnalyticsService(db)
    snapshot = service.get_snapshot(coin_id)
    if not snapshot:
        raise HTTPException(status_code=404, detail=f"Token '{coin_id}' not found")

    info, tags, listings = service.get_token_detail(coin_id)
    return TokenDetailResponse(
        snapshot=SnapshotOut(**snapshot),
        info=TokenInfoOut.model_validate(info) if info else None,
        tags=tags,
        dex_listings=[DexListingOut.model_validate(listing) for listing in listings],
    )
