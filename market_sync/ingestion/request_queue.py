"""FIFO request queue that serializes outbound calls with a minimum spacing."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Tuple

from market_sync.core.logging import get_logger

log = get_logger("ingestion.request_queue")

RequestFactory = Callable[[], Awaitable[Any]]


class RequestQueue:
    """Runs submitted coroutines one at a time, in submission order.

    A single worker task is started lazily on first ``submit``. Consecutive
    requests start at least ``min_interval`` seconds apart.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = min_interval
        self._sleep = sleep
        self._clock = clock
        self._queue: "asyncio.Queue[Tuple[RequestFactory, asyncio.Future]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._last_started: Optional[float] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def submit(self, factory: RequestFactory) -> Any:
        future = asyncio.get_running_loop().create_future()
        await self._queue.put((factory, future))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
        return await future

    async def _run(self) -> None:
        while True:
            factory, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                await self._wait_turn()
                try:
                    result = await factory()
                except Exception as exc:  # noqa: BLE001
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    async def _wait_turn(self) -> None:
        if self._last_started is not None:
            remaining = self.min_interval - (self._clock() - self._last_started)
            if remaining > 0:
                await self._sleep(remaining)
        self._last_started = self._clock()

    async def close(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            if not future.done():
                future.cancel()
        log.debug("Request queue closed")
