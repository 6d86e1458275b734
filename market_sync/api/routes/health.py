"""Health routes - System health and readiness checks."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market_sync.api.deps import get_db
from market_sync.core.registry import Capability
from market_sync.schemas.api import HealthResponse, ReadinessResponse
from market_sync.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health(response: Response, db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Checks database connectivity and the status of the last market sync.
    Returns 503 if the database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        response.status_code = 503
        return HealthResponse(database=f"down: {e}", last_sync_status=None)

    last_run = AnalyticsService(db).get_last_run()
    return HealthResponse(
        database="ok",
        last_sync_status=last_run.status if last_run else None,
        last_sync_at=last_run.ended_at if last_run else None,
    )


@router.get("/ready", response_model=ReadinessResponse)
def readiness(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Readiness probe: ready once at least one market sync has stored data.

    Returns 503 until then.
    """
    registry = getattr(request.app.state, "registry", None)
    services = {
        capability.value: bool(registry and registry.get(capability))
        for capability in Capability
    }
    tracked = len(AnalyticsService(db).get_all_token_ids())
    ready = tracked > 0
    if not ready:
        response.status_code = 503
    return ReadinessResponse(ready=ready, tracked_tokens=tracked, services=services)
