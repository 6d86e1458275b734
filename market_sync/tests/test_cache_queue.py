"""Expiring cache, request queue and quote service tests"""

import asyncio

import pytest

from market_sync.core.cache import ExpiringCache
from market_sync.core.errors import UpstreamError
from market_sync.ingestion.request_queue import RequestQueue
from market_sync.schemas.coingecko import PriceQuote
from market_sync.services.quote_service import QuoteService


class TestExpiringCache:
    """Test TTL behaviour"""

    def test_value_expires_after_ttl(self, clock):
        cache = ExpiringCache(ttl=300, clock=clock)
        cache.set("price:degen", 1.0)

        clock.advance(299)
        assert cache.get("price:degen") == 1.0
        clock.advance(1)
        assert cache.get("price:degen") is None
        assert len(cache) == 0

    def test_missing_key(self, clock):
        assert ExpiringCache(clock=clock).get("nope") is None

    @pytest.mark.asyncio
    async def test_get_or_fetch_calls_once(self, clock):
        cache = ExpiringCache(ttl=60, clock=clock)
        calls = []

        async def fetch():
            calls.append(1)
            return "value"

        assert await cache.get_or_fetch("k", fetch) == "value"
        assert await cache.get_or_fetch("k", fetch) == "value"
        assert len(calls) == 1

        clock.advance(61)
        await cache.get_or_fetch("k", fetch)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, clock):
        cache = ExpiringCache(clock=clock)

        async def fetch():
            return None

        assert await cache.get_or_fetch("k", fetch) is None
        assert len(cache) == 0


class TestRequestQueue:
    """Test FIFO ordering and spacing"""

    @pytest.mark.asyncio
    async def test_fifo_with_minimum_spacing(self, sleep, clock):
        queue = RequestQueue(min_interval=1.0, sleep=sleep, clock=clock)
        order = []

        def job(name):
            async def run():
                order.append(name)
                return name

            return run

        results = await asyncio.gather(queue.submit(job("a")), queue.submit(job("b")), queue.submit(job("c")))

        assert results == ["a", "b", "c"]
        assert order == ["a", "b", "c"]
        # Frozen clock: every call after the first waits the full interval
        assert sleep.calls == [1.0, 1.0]
        await queue.close()

    @pytest.mark.asyncio
    async def test_no_wait_when_interval_elapsed(self, sleep, clock):
        queue = RequestQueue(min_interval=1.0, sleep=sleep, clock=clock)

        async def noop():
            return None

        await queue.submit(noop)
        clock.advance(5)
        await queue.submit(noop)
        assert sleep.calls == []
        await queue.close()

    @pytest.mark.asyncio
    async def test_errors_reach_the_caller_and_queue_keeps_running(self, sleep, clock):
        queue = RequestQueue(min_interval=0, sleep=sleep, clock=clock)

        async def boom():
            raise UpstreamError("down", status_code=503)

        async def ok():
            return 42

        with pytest.raises(UpstreamError):
            await queue.submit(boom)
        assert await queue.submit(ok) == 42
        await queue.close()


class FakeQuoteClient:
    def __init__(self):
        self.calls = []

    async def get_simple_price(self, coin_id):
        self.calls.append(("price", coin_id))
        return PriceQuote(id=coin_id, current_price=0.01)

    async def get_trending(self):
        self.calls.append(("trending",))
        return []

    async def search(self, query):
        self.calls.append(("search", query))
        return []


class TestQuoteService:
    """Test cached, queued lookups"""

    @pytest.mark.asyncio
    async def test_price_is_cached(self, sleep, clock):
        client = FakeQuoteClient()
        service = QuoteService(
            client,
            cache=ExpiringCache(ttl=300, clock=clock),
            queue=RequestQueue(min_interval=0, sleep=sleep, clock=clock),
        )

        first = await service.get_price("Degen-Base")
        second = await service.get_price("degen-base")

        assert first.current_price == 0.01
        assert second is first
        assert client.calls == [("price", "degen-base")]
        await service.stop()

    @pytest.mark.asyncio
    async def test_search_keyed_by_query(self, sleep, clock):
        client = FakeQuoteClient()
        service = QuoteService(
            client,
            cache=ExpiringCache(ttl=300, clock=clock),
            queue=RequestQueue(min_interval=0, sleep=sleep, clock=clock),
        )

        await service.search_coins("degen")
        await service.search_coins("brett")
        await service.get_trending()
        assert client.calls == [("search", "degen"), ("search", "brett"), ("trending",)]
        await service.stop()
