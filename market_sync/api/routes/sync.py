"""Sync routes - trigger market sync, enrichment and retention cleanup."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from market_sync.api.deps import get_registry, require_service
from market_sync.core.errors import StorageError, SyncCycleError
from market_sync.core.logging import get_logger
from market_sync.core.registry import Capability, ServiceRegistry
from market_sync.schemas.api import CleanupResponse, EnrichmentReport, SyncTriggerResponse

router = APIRouter(prefix="/sync", tags=["sync"])
log = get_logger("sync_routes")


@router.post("/run", response_model=SyncTriggerResponse)
async def trigger_sync(registry: ServiceRegistry = Depends(get_registry)):
    """
    Run one market data sync cycle now.

    Bypasses the minimum gap but not the in-flight guard.
    """
    service = require_service(registry, Capability.MARKET_DATA)
    if service.updating:
        raise HTTPException(status_code=409, detail="A sync is already in progress")

    log.info("Market sync triggered via API")
    try:
        stored = await service.update_market_data()
    except SyncCycleError as exc:
        log.error(f"Triggered sync failed: {exc}")
        return SyncTriggerResponse(success=False, records_processed=0, error=str(exc))
    return SyncTriggerResponse(success=True, records_processed=stored)


@router.post("/enrich", response_model=EnrichmentReport)
async def trigger_enrichment(registry: ServiceRegistry = Depends(get_registry)):
    """Enrich every stored token that has no token info yet."""
    service = require_service(registry, Capability.TOKEN_INFO)
    log.info("Token enrichment triggered via API")
    return await service.enrich_new_tokens()


@router.post("/cleanup", response_model=CleanupResponse)
def trigger_cleanup(
    retention_days: Optional[int] = Query(None, ge=1, description="Defaults to RETENTION_DAYS"),
    registry: ServiceRegistry = Depends(get_registry),
):
    """Delete snapshots older than the retention horizon."""
    service = require_service(registry, Capability.MARKET_DATA)
    days = retention_days or service.retention_days
    try:
        removed = service.ingestion.cleanup_old_data(days)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return CleanupResponse(removed=removed, retention_days=days)
