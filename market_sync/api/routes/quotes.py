"""Quote routes - cached spot price, trending and search lookups."""

from fastapi import APIRouter, Depends, HTTPException, Query

from market_sync.api.deps import get_registry, require_service
from market_sync.core.errors import RateLimitError, ResponseValidationError, UpstreamError
from market_sync.core.registry import Capability, ServiceRegistry
from market_sync.schemas.coingecko import PriceQuote, SearchResult, TrendingCoin

router = APIRouter(prefix="/quotes", tags=["quotes"])


def _upstream_failure(exc: Exception) -> HTTPException:
    if isinstance(exc, RateLimitError):
        return HTTPException(status_code=503, detail="Upstream rate limit reached, try again later")
    return HTTPException(status_code=502, detail=str(exc))


@router.get("/price/{coin_id}", response_model=PriceQuote)
async def get_price(coin_id: str, registry: ServiceRegistry = Depends(get_registry)):
    service = require_service(registry, Capability.QUOTES)
    try:
        quote = await service.get_price(coin_id)
    except (UpstreamError, ResponseValidationError) as exc:
        raise _upstream_failure(exc) from exc
    if quote is None:
        raise HTTPException(status_code=404, detail=f"No price found for '{coin_id}'")
    return quote


@router.get("/trending", response_model=list[TrendingCoin])
async def get_trending(registry: ServiceRegistry = Depends(get_registry)):
    service = require_service(registry, Capability.QUOTES)
    try:
        return await service.get_trending()
    except (UpstreamError, ResponseValidationError) as exc:
        raise _upstream_failure(exc) from exc


@router.get("/search", response_model=list[SearchResult])
async def search(
    q: str = Query(..., min_length=1, description="Coin name or symbol"),
    registry: ServiceRegistry = Depends(get_registry),
):
    service = require_service(registry, Capability.QUOTES)
    try:
        return await service.search_coins(q)
    except (UpstreamError, ResponseValidationError) as exc:
        raise _upstream_failure(exc) from exc
