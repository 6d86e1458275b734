"""Sync entrypoint - Standalone script for running one job and exiting.

Usage:
    python -m market_sync.sync_entrypoint            # One market data sync cycle
    python -m market_sync.sync_entrypoint sync       # Same as above
    python -m market_sync.sync_entrypoint enrich     # Enrich tokens missing token info
    python -m market_sync.sync_entrypoint cleanup    # Delete snapshots past retention
"""

import asyncio
import sys

from market_sync.core.config import settings
from market_sync.core.db import SessionLocal, engine, init_db
from market_sync.core.errors import MarketSyncError, MissingDependencyError
from market_sync.core.logging import get_logger
from market_sync.core.registry import Capability
from market_sync.ingestion.client import CoinGeckoClient
from market_sync.main import build_registry
from market_sync.services.ingestion_service import IngestionService

logger = get_logger("sync_entrypoint")

JOBS = ("sync", "enrich", "cleanup")


async def run_job(job: str):
    """Run a single job against the configured database."""
    init_db(engine)

    if job == "cleanup":
        removed = IngestionService(SessionLocal).cleanup_old_data(settings.RETENTION_DAYS)
        return {"removed": removed}

    client = CoinGeckoClient()
    try:
        registry = build_registry(client, SessionLocal, enrichment_enabled=(job == "enrich"))
        market = registry.require(Capability.MARKET_DATA)
        if job == "sync":
            stored = await market.update_market_data()
            return {"records_processed": stored}

        enrichment = registry.require(Capability.TOKEN_INFO)
        if not enrichment.api_key:
            raise MissingDependencyError("COINGECKO_API_KEY is required for token info enrichment")
        report = await enrichment.enrich_new_tokens()
        return report.model_dump()
    finally:
        await client.aclose()


def main():
    """Main entry point for one-shot jobs."""
    job = sys.argv[1] if len(sys.argv) > 1 else "sync"
    if job not in JOBS:
        logger.error(f"Invalid job: {job}. Must be one of: {', '.join(JOBS)}")
        sys.exit(1)

    logger.info(f"Starting {job} job")
    try:
        result = asyncio.run(run_job(job))
    except MarketSyncError as exc:
        logger.error(f"{job} job failed: {exc}")
        sys.exit(1)

    logger.info(f"{job} job completed: {result}")
    return result


if __name__ == "__main__":
    main()
