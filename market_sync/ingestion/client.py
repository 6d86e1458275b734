"""Thin async client for the CoinGecko REST API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from market_sync.core.config import settings
from market_sync.core.errors import RateLimitError, ResponseValidationError, UpstreamError
from market_sync.core.logging import get_logger
from market_sync.schemas.coingecko import (
    CoinDetail,
    CoinMarketItem,
    CoinMarketPage,
    PriceQuote,
    SearchResult,
    SearchResultList,
    TrendingCoin,
    TrendingList,
)

log = get_logger("ingestion.client")

API_KEY_HEADER = "x-cg-demo-api-key"


class CoinGeckoClient:
    """Issues upstream requests and maps failures onto the error hierarchy.

    A 429 raises ``RateLimitError``; any other non-2xx status or transport
    failure raises ``UpstreamError``. Payloads that do not validate raise
    ``ResponseValidationError``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.COINGECKO_API_KEY
        self.base_url = (base_url or settings.COINGECKO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._get_client().get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Request to {path} failed: {exc}") from exc

        if resp.status_code == 429:
            raise RateLimitError()
        if not resp.is_success:
            raise UpstreamError(
                f"CoinGecko API error: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ResponseValidationError(f"Non-JSON response from {path}") from exc

    async def get_markets(
        self,
        category: str,
        page: int,
        per_page: int,
        order: str = "volume_desc",
        price_change_windows: str = "1h,24h,7d,14d,30d,200d",
    ) -> List[CoinMarketItem]:
        params = {
            "vs_currency": "usd",
            "category": category,
            "order": order,
            "per_page": per_page,
            "page": page,
            "price_change_percentage": price_change_windows,
            "locale": "en",
            "precision": "full",
        }
        data = await self._get("/coins/markets", params)
        try:
            return CoinMarketPage.validate_python(data)
        except ValidationError as exc:
            raise ResponseValidationError(f"Invalid markets page for {category}: {exc}") from exc

    async def get_coin(self, coin_id: str) -> CoinDetail:
        params = {
            "localization": "false",
            "tickers": "true",
            "market_data": "false",
            "community_data": "true",
            "developer_data": "false",
            "sparkline": "false",
        }
        data = await self._get(f"/coins/{coin_id}", params)
        try:
            return CoinDetail.model_validate(data)
        except ValidationError as exc:
            raise ResponseValidationError(f"Invalid detail payload for {coin_id}: {exc}") from exc

    async def get_simple_price(self, coin_id: str) -> Optional[PriceQuote]:
        params = {
            "ids": coin_id,
            "vs_currencies": "usd",
            "include_market_cap": "true",
            "include_24hr_vol": "true",
            "include_24hr_change": "true",
            "include_last_updated_at": "true",
        }
        data = await self._get("/simple/price", params)
        if not isinstance(data, dict):
            raise ResponseValidationError("Invalid simple price payload")
        entry = data.get(coin_id)
        if not entry:
            return None
        try:
            return PriceQuote(
                id=coin_id,
                current_price=entry.get("usd"),
                market_cap=entry.get("usd_market_cap"),
                total_volume=entry.get("usd_24h_vol"),
                price_change_percentage_24h=entry.get("usd_24h_change"),
                last_updated_at=entry.get("last_updated_at"),
            )
        except ValidationError as exc:
            raise ResponseValidationError(f"Invalid price for {coin_id}: {exc}") from exc

    async def get_trending(self) -> List[TrendingCoin]:
        data = await self._get("/search/trending")
        try:
            return TrendingList.validate_python((data or {}).get("coins", []))
        except (ValidationError, AttributeError) as exc:
            raise ResponseValidationError(f"Invalid trending payload: {exc}") from exc

    async def search(self, query: str) -> List[SearchResult]:
        data = await self._get("/search", {"query": query})
        try:
            return SearchResultList.validate_python((data or {}).get("coins", []))
        except (ValidationError, AttributeError) as exc:
            raise ResponseValidationError(f"Invalid search payload: {exc}") from exc
