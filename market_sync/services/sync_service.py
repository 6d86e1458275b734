"""Periodic market data sync: fetch every category, store, sweep old rows."""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from market_sync.core.config import settings
from market_sync.core.errors import MarketSyncError, StorageError, SyncCycleError
from market_sync.core.logging import get_logger
from market_sync.core.registry import BaseService, Capability
from market_sync.core.timeutils import utcnow
from market_sync.ingestion.base import BaseSource
from market_sync.ingestion.runner import IngestionRunner
from market_sync.services.ingestion_service import IngestionService
from market_sync.services.runs import finish_run, start_run

log = get_logger("sync_service")

JOB_NAME = "market_sync"


class MarketSyncService(BaseService):
    """Owns the sync timer and the in-flight / minimum-gap guards.

    ``last_update_time`` is a monotonic clock reading and only moves after a
    fully successful attempt; ``last_updated_at`` is the matching wall time.
    """

    capability = Capability.MARKET_DATA

    def __init__(
        self,
        source: BaseSource,
        ingestion: IngestionService,
        categories: Optional[List[str]] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        min_update_gap: Optional[float] = None,
        interval: Optional[float] = None,
        retention_days: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.ingestion = ingestion
        self.runner = IngestionRunner(source)
        self.categories = list(categories or settings.SYNC_CATEGORIES)
        self.max_retries = max_retries or settings.MAX_RETRIES
        self.retry_delay = settings.RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.min_update_gap = settings.MIN_UPDATE_GAP_SECONDS if min_update_gap is None else min_update_gap
        self.interval = interval or settings.SYNC_INTERVAL_SECONDS
        self.retention_days = settings.RETENTION_DAYS if retention_days is None else retention_days
        self._sleep = sleep
        self._clock = clock

        self.updating = False
        self.last_update_time: Optional[float] = None
        self.last_updated_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def start(self) -> None:
        log.info(f"Starting market data sync for {', '.join(self.categories)}")
        self._task = asyncio.create_task(self._run_forever())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run_forever(self) -> None:
        # Initial cycle runs immediately, then one tick per interval
        while True:
            try:
                await self.check_and_update()
            except Exception as exc:  # noqa: BLE001
                log.exception(f"Unexpected error in sync loop: {exc}")
            await asyncio.sleep(self.interval)

    # -------------------------------------------------------------------------
    # Sync cycle
    # -------------------------------------------------------------------------
    def should_update(self) -> bool:
        if self.updating:
            log.info("Sync already in progress, skipping tick")
            return False
        if self.last_update_time is not None:
            elapsed = self._clock() - self.last_update_time
            if elapsed < self.min_update_gap:
                log.debug(f"Last sync {elapsed:.0f}s ago, below the {self.min_update_gap}s gap")
                return False
        return True

    async def check_and_update(self) -> bool:
        """Run one sync cycle if the guards allow it. Returns True when a cycle succeeded."""
        if not self.should_update():
            return False
        try:
            await self.update_market_data()
        except SyncCycleError as exc:
            log.error(f"Market data sync failed after {exc.attempts} attempts: {exc}")
            return False
        return True

    async def update_market_data(self) -> int:
        """Fetch and store every category, retrying the whole step on failure."""
        self.updating = True
        try:
            run_id = self._record_start()
            retrying = AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_fixed(self.retry_delay),
                retry=retry_if_exception_type(MarketSyncError),
                after=self._log_failed_attempt,
                sleep=self._sleep,
                reraise=True,
            )
            attempts = 0
            stored = 0
            try:
                async for attempt in retrying:
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        stored = await self._sync_once()
            except MarketSyncError as exc:
                self._record_finish(run_id, "failure", attempts=attempts, error_message=str(exc))
                raise SyncCycleError(f"Sync failed: {exc}", attempts=attempts) from exc

            self.last_update_time = self._clock()
            self.last_updated_at = utcnow()
            self._record_finish(run_id, "success", attempts=attempts, records_processed=stored)
            log.info(f"Market data sync stored {stored} records (attempt {attempts})")
            self._sweep()
            return stored
        finally:
            self.updating = False

    def _log_failed_attempt(self, retry_state: RetryCallState) -> None:
        log.warning(
            f"Sync attempt {retry_state.attempt_number}/{self.max_retries} failed: {retry_state.outcome.exception()}"
        )

    def _record_start(self) -> Optional[uuid.UUID]:
        try:
            return start_run(self.ingestion.session_factory, JOB_NAME)
        except StorageError as exc:
            log.error(f"Sync run bookkeeping unavailable: {exc}")
            return None

    def _record_finish(self, run_id: Optional[uuid.UUID], status: str, **fields) -> None:
        try:
            finish_run(self.ingestion.session_factory, run_id, status, **fields)
        except StorageError as exc:
            log.error(f"Sync run bookkeeping unavailable: {exc}")

    async def _sync_once(self) -> int:
        result = await self.runner.run(self.categories)
        failures = dict(result.failures)
        stored = 0

        for category, records in result.records.items():
            try:
                stored += self.ingestion.store_market_data(records)
            except StorageError as exc:
                failures[category] = exc

        if failures:
            details = "; ".join(f"{name}: {err}" for name, err in failures.items())
            raise MarketSyncError(f"{len(failures)} of {len(self.categories)} categories failed ({details})")
        return stored

    def _sweep(self) -> None:
        try:
            self.ingestion.cleanup_old_data(self.retention_days)
        except StorageError as exc:
            log.error(f"Retention cleanup failed: {exc}")

    def get_all_token_ids(self) -> List[str]:
        return self.ingestion.get_all_token_ids()
