"""Paginated market data fetcher for one category."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional

from market_sync.core.config import settings
from market_sync.core.logging import get_logger
from market_sync.core.timeutils import utcnow
from market_sync.ingestion.base import BaseSource
from market_sync.ingestion.client import CoinGeckoClient
from market_sync.schemas.coingecko import CoinMarketItem
from market_sync.schemas.normalized import MarketRecord

log = get_logger("ingestion.fetcher")

Sleep = Callable[[float], Awaitable[None]]


class MarketDataFetcher(BaseSource):
    """Walks ``/coins/markets`` pages until a short page is returned."""

    name = "coingecko"

    def __init__(
        self,
        client: CoinGeckoClient,
        page_size: Optional[int] = None,
        page_delay: Optional[float] = None,
        order: Optional[str] = None,
        price_change_windows: Optional[str] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.page_size = page_size or settings.PAGE_SIZE
        self.page_delay = settings.PAGE_DELAY_SECONDS if page_delay is None else page_delay
        self.order = order or settings.MARKETS_ORDER
        self.price_change_windows = price_change_windows or settings.PRICE_CHANGE_WINDOWS
        self._sleep = sleep

    async def fetch(self, category: str) -> List[MarketRecord]:
        items: List[CoinMarketItem] = []
        page = 1

        # Errors propagate and whatever was accumulated is dropped
        while True:
            batch = await self.client.get_markets(
                category,
                page=page,
                per_page=self.page_size,
                order=self.order,
                price_change_windows=self.price_change_windows,
            )
            items.extend(batch)
            log.debug(f"Fetched page {page} for {category} ({len(batch)} coins)")

            if len(batch) < self.page_size:
                break
            page += 1
            await self._sleep(self.page_delay)

        fetched_at = utcnow()
        records = [MarketRecord.from_market_item(item, category, fetched_at) for item in items]
        log.info(f"Fetched {len(records)} coins for category {category} in {page} page(s)")
        return records
