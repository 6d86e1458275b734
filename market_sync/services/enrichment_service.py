"""Rate-limited token detail enrichment (token info, tags, DEX venues)."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from typing import Awaitable, Callable, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from market_sync.core.config import settings
from market_sync.core.errors import (
    MarketSyncError,
    MissingDependencyError,
    RateLimitError,
    ReadinessTimeoutError,
    StorageError,
)
from market_sync.core.logging import get_logger
from market_sync.core.registry import BaseService, Capability, ServiceRegistry
from market_sync.core.timeutils import utcnow
from market_sync.ingestion.client import CoinGeckoClient
from market_sync.models import DexListing, MarketSnapshot, TokenInfo, TokenTag
from market_sync.schemas.api import EnrichmentReport
from market_sync.schemas.coingecko import CoinDetail, Ticker
from market_sync.services.runs import finish_run, start_run

log = get_logger("enrichment_service")

JOB_NAME = "enrichment"
REDDIT_ROOT = "https://www.reddit.com"


def _first(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


class TokenInfoService(BaseService):
    """Sole writer of ``token_info``, ``token_tags`` and ``dex_listings``.

    Ids are drained from a FIFO queue one at a time. Requests are spaced by
    ``60 / ENRICHMENT_REQUESTS_PER_MINUTE`` seconds; a 429 puts the id back at
    the head of the queue and backs off before the next dequeue.
    """

    capability = Capability.TOKEN_INFO

    def __init__(
        self,
        client: CoinGeckoClient,
        session_factory: sessionmaker[Session],
        registry: Optional[ServiceRegistry] = None,
        api_key: Optional[str] = None,
        request_delay: Optional[float] = None,
        rate_limit_backoff: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.session_factory = session_factory
        self.registry = registry
        self.api_key = api_key if api_key is not None else settings.COINGECKO_API_KEY
        self.request_delay = settings.enrichment_delay_seconds if request_delay is None else request_delay
        self.rate_limit_backoff = (
            settings.RATE_LIMIT_BACKOFF_SECONDS if rate_limit_backoff is None else rate_limit_backoff
        )
        self.poll_attempts = poll_attempts or settings.READINESS_POLL_ATTEMPTS
        self.poll_interval = settings.READINESS_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self._sleep = sleep

        self.platform_id = settings.PLATFORM_ID
        self.explorer_domain = settings.EXPLORER_DOMAIN
        self.dex_identifiers = set(settings.DEX_IDENTIFIERS)

        self._market = None
        self._lock = asyncio.Lock()
        self._queue: deque[str] = deque()
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[EnrichmentReport] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def start(self) -> None:
        if not self.api_key:
            raise MissingDependencyError("COINGECKO_API_KEY is required for token info enrichment")
        if self.registry is None:
            raise MissingDependencyError("Token info enrichment needs a service registry")
        self._market = self.registry.require(Capability.MARKET_DATA)
        log.info("CoinGecko API key validated")
        self._task = asyncio.create_task(self._initial_pass())

    async def stop(self) -> None:
        self._queue.clear()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _initial_pass(self) -> None:
        try:
            await self.wait_for_market_data()
            await self.enrich_new_tokens()
        except MarketSyncError as exc:
            log.error(f"Token info initialization failed: {exc}")

    async def wait_for_market_data(self) -> List[str]:
        """Poll until the market data service has stored at least one coin."""
        market = self._market_service()
        if market is None:
            raise MissingDependencyError("Market data service not available")

        for attempt in range(1, self.poll_attempts + 1):
            token_ids = market.get_all_token_ids()
            if token_ids:
                log.info(f"Market data ready with {len(token_ids)} tokens")
                return token_ids
            log.info(f"Waiting for initial market data fetch ({attempt}/{self.poll_attempts})")
            if attempt < self.poll_attempts:
                await self._sleep(self.poll_interval)
        raise ReadinessTimeoutError("Timed out waiting for the initial market data fetch")

    # -------------------------------------------------------------------------
    # Queue processing
    # -------------------------------------------------------------------------
    def _market_service(self):
        if self._market is None and self.registry is not None:
            self._market = self.registry.get(Capability.MARKET_DATA)
        return self._market

    def get_tokens_needing_info(self) -> List[str]:
        market = self._market_service()
        if market is not None:
            all_ids = market.get_all_token_ids()
        else:
            with self.session_factory() as db:
                all_ids = list(db.execute(select(MarketSnapshot.coin_id).distinct()).scalars().all())

        with self.session_factory() as db:
            known = set(db.execute(select(TokenInfo.id)).scalars().all())

        missing = [token_id for token_id in all_ids if token_id not in known]
        log.info(f"Found {len(all_ids)} total tokens, {len(missing)} need processing")
        return missing

    async def enrich_new_tokens(self) -> EnrichmentReport:
        return await self.process_bulk_token_info(self.get_tokens_needing_info())

    async def retry_failed_tokens(self, failed_ids: List[str]) -> EnrichmentReport:
        log.info(f"Retrying {len(failed_ids)} failed tokens")
        return await self.process_bulk_token_info(failed_ids)

    async def process_bulk_token_info(self, token_ids: List[str]) -> EnrichmentReport:
        """Drain ``token_ids`` through the rate-limited queue."""
        async with self._lock:
            report = EnrichmentReport(requested=len(token_ids))
            if not token_ids:
                log.info("No tokens to process")
                self.last_report = report
                return report

            run_id = start_run(self.session_factory, JOB_NAME)
            self._queue = deque(token_ids)
            log.info(f"Starting bulk token info processing for {len(token_ids)} tokens")

            while self._queue:
                token_id = self._queue.popleft()
                await self._sleep(self.request_delay)
                try:
                    await self.fetch_token_info(token_id)
                except RateLimitError:
                    report.rate_limited += 1
                    self._queue.appendleft(token_id)
                    log.warning(f"Rate limit hit for {token_id}, waiting {self.rate_limit_backoff}s")
                    await self._sleep(self.rate_limit_backoff)
                    continue
                except MarketSyncError as exc:
                    report.failed += 1
                    report.failed_ids.append(token_id)
                    log.error(f"Failed to fetch token info for {token_id}: {exc}")
                else:
                    report.succeeded += 1
                report.processed += 1

                if report.processed % 10 == 0:
                    log.info(
                        f"Progress: {report.processed}/{len(token_ids)} "
                        f"(success={report.succeeded}, failures={report.failed})"
                    )

            finish_run(
                self.session_factory,
                run_id,
                "success" if not report.failed else "failure",
                records_processed=report.succeeded,
                error_message=", ".join(report.failed_ids) or None,
            )
            log.info(
                f"Bulk processing completed. Total: {len(token_ids)}, "
                f"Success: {report.succeeded}, Failures: {report.failed}"
            )
            if report.failed_ids:
                log.info(f"Failed token IDs: {', '.join(report.failed_ids)}")
            self.last_report = report
            return report

    # -------------------------------------------------------------------------
    # Single token
    # -------------------------------------------------------------------------
    async def fetch_token_info(self, token_id: str) -> CoinDetail:
        """Fetch one coin's detail and write info, tags and venues in one transaction."""
        detail = await self.client.get_coin(token_id)
        try:
            with self.session_factory() as db, db.begin():
                self._upsert_token_info(db, token_id, detail)
                self._insert_tags(db, token_id, detail)
                self._replace_dex_listings(db, token_id, detail)
        except SQLAlchemyError as exc:
            raise StorageError(f"Database error while storing token info for {token_id}: {exc}") from exc
        log.debug(f"Stored token info for {token_id}")
        return detail

    def token_info_row(self, token_id: str, detail: CoinDetail) -> dict:
        links = detail.links
        deployer_url = token_url = None
        for url in links.blockchain_site:
            if not url or self.explorer_domain not in url:
                continue
            if "/address/" in url:
                deployer_url = url
            elif "/token/" in url:
                token_url = url

        platform = detail.detail_platforms.get(self.platform_id)
        subreddit = links.subreddit_url if links.subreddit_url and links.subreddit_url.rstrip("/") != REDDIT_ROOT else None

        return {
            "id": token_id,
            "symbol": detail.symbol,
            "name": detail.name,
            "asset_platform_id": detail.asset_platform_id,
            "contract_address": detail.platforms.get(self.platform_id) or None,
            "decimals": platform.decimal_place if platform else None,
            "public_notice": detail.public_notice or None,
            "additional_notices": json.dumps(detail.additional_notices),
            "description": detail.description.get("en") or None,
            "homepage_url": _first(links.homepage),
            "deployer_explorer_url": deployer_url,
            "token_explorer_url": token_url,
            "chat_url": _first(links.chat_url),
            "announcement_url": _first(links.announcement_url),
            "snapshot_url": links.snapshot_url or None,
            "twitter_url": f"https://twitter.com/{links.twitter_screen_name}" if links.twitter_screen_name else None,
            "telegram_url": (
                f"https://t.me/{links.telegram_channel_identifier}" if links.telegram_channel_identifier else None
            ),
            "subreddit_url": subreddit,
            "github_url": _first(links.repos_url.github),
            "bitbucket_url": _first(links.repos_url.bitbucket),
            "image_thumb_url": detail.image.thumb,
            "image_small_url": detail.image.small,
            "image_large_url": detail.image.large,
            "country_origin": detail.country_origin or None,
            "genesis_date": detail.genesis_date or None,
            "watchlist_portfolio_users": detail.watchlist_portfolio_users,
            "market_cap_rank": detail.market_cap_rank,
            "twitter_followers": detail.community_data.twitter_followers,
            "telegram_channel_users": detail.community_data.telegram_channel_user_count,
            "last_updated": utcnow(),
        }

    def is_valid_ticker(self, ticker: Ticker) -> bool:
        return bool(
            ticker.market
            and ticker.market.identifier in self.dex_identifiers
            and ticker.trust_score != "red"
            and not ticker.is_stale
        )

    def _upsert_token_info(self, db: Session, token_id: str, detail: CoinDetail) -> None:
        row = self.token_info_row(token_id, detail)
        stmt = insert(TokenInfo).values(row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TokenInfo.id],
            set_={key: getattr(stmt.excluded, key) for key in row if key != "id"},
        )
        db.execute(stmt)

    def _insert_tags(self, db: Session, token_id: str, detail: CoinDetail) -> None:
        tags = sorted({tag for tag in detail.categories if tag})
        if not tags:
            return
        db.execute(
            insert(TokenTag.__table__).on_conflict_do_nothing(),
            [{"token_id": token_id, "tag": tag} for tag in tags],
        )

    def _replace_dex_listings(self, db: Session, token_id: str, detail: CoinDetail) -> None:
        db.execute(delete(DexListing).where(DexListing.token_id == token_id))

        rows = [
            {
                "token_id": token_id,
                "dex_identifier": ticker.market.identifier,
                "timestamp": ticker.timestamp or "",
                "base_token_address": ticker.base,
                "target_token_address": ticker.target,
                "trust_score": ticker.trust_score,
                "bid_ask_spread_percentage": ticker.bid_ask_spread_percentage,
                "last_traded_at": ticker.last_traded_at,
                "last_fetch_at": ticker.last_fetch_at,
                "is_anomaly": ticker.is_anomaly,
                "trade_url": ticker.trade_url,
                "target_token_id": ticker.target_coin_id,
            }
            for ticker in detail.tickers
            if self.is_valid_ticker(ticker)
        ]
        if rows:
            db.execute(insert(DexListing.__table__).on_conflict_do_nothing(), rows)
        log.debug(f"Found {len(rows)} valid DEX tickers for {token_id}")
