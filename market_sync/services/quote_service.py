"""Cached, queued quote lookups: spot price, trending coins, search."""

from __future__ import annotations

from typing import List, Optional

from market_sync.core.cache import ExpiringCache
from market_sync.core.config import settings
from market_sync.core.logging import get_logger
from market_sync.core.registry import BaseService, Capability
from market_sync.ingestion.client import CoinGeckoClient
from market_sync.ingestion.request_queue import RequestQueue
from market_sync.schemas.coingecko import PriceQuote, SearchResult, TrendingCoin

log = get_logger("quote_service")


class QuoteService(BaseService):
    """Every outbound call goes through one FIFO queue; results are cached per request."""

    capability = Capability.QUOTES

    def __init__(
        self,
        client: CoinGeckoClient,
        cache: Optional[ExpiringCache] = None,
        queue: Optional[RequestQueue] = None,
    ):
        self.client = client
        self.cache = cache or ExpiringCache(ttl=settings.QUOTE_CACHE_TTL_SECONDS)
        self.queue = queue or RequestQueue(min_interval=settings.QUOTE_MIN_INTERVAL_SECONDS)

    async def start(self) -> None:
        log.info("Quote service ready")

    async def stop(self) -> None:
        await self.queue.close()
        self.cache.clear()

    async def get_price(self, coin_id: str) -> Optional[PriceQuote]:
        coin_id = coin_id.strip().lower()
        return await self.cache.get_or_fetch(
            f"price:{coin_id}",
            lambda: self.queue.submit(lambda: self.client.get_simple_price(coin_id)),
        )

    async def get_trending(self) -> List[TrendingCoin]:
        return await self.cache.get_or_fetch(
            "trending",
            lambda: self.queue.submit(self.client.get_trending),
        )

    async def search_coins(self, query: str) -> List[SearchResult]:
        query = query.strip()
        return await self.cache.get_or_fetch(
            f"search:{query.lower()}",
            lambda: self.queue.submit(lambda: self.client.search(query)),
        )
