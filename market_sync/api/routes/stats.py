"""Stats routes - sync observability."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from market_sync.api.deps import get_db
from market_sync.schemas.api import StatsResponse, SyncRunOut
from market_sync.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
def get_sync_stats(
    job_name: Optional[str] = Query(None, description="Filter by job (market_sync, enrichment)"),
    limit: int = Query(10, ge=1, le=50, description="Number of runs to return"),
    db: Session = Depends(get_db),
):
    """
    Recent sync runs plus store counts.

    Shows attempts, records processed, status and error messages per run.
    """
    service = AnalyticsService(db)
    runs = service.get_recent_runs(limit=limit, job_name=job_name)
    return StatsResponse(
        runs=[SyncRunOut.model_validate(run) for run in runs],
        snapshot_count=service.count_snapshots(),
        tracked_tokens=len(service.get_all_token_ids()),
        enriched_tokens=service.count_enriched(),
    )
