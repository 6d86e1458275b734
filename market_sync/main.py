from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.orm import Session, sessionmaker

from market_sync.api.routes import analytics, data, health, quotes, stats, sync
from market_sync.core.config import settings
from market_sync.core.db import SessionLocal, engine, init_db
from market_sync.core.logging import get_logger
from market_sync.core.registry import ServiceRegistry
from market_sync.ingestion.client import CoinGeckoClient
from market_sync.ingestion.fetcher import MarketDataFetcher
from market_sync.services.enrichment_service import TokenInfoService
from market_sync.services.ingestion_service import IngestionService
from market_sync.services.quote_service import QuoteService
from market_sync.services.sync_service import MarketSyncService


log = get_logger("app")


def build_registry(
    client: CoinGeckoClient,
    session_factory: sessionmaker[Session],
    sync_enabled: bool = True,
    enrichment_enabled: bool = True,
) -> ServiceRegistry:
    """Register services in start order: market data, enrichment, quotes."""
    registry = ServiceRegistry()
    if sync_enabled:
        ingestion = IngestionService(session_factory)
        registry.register(MarketSyncService(MarketDataFetcher(client), ingestion))
    if enrichment_enabled:
        registry.register(TokenInfoService(client, session_factory, registry=registry))
    registry.register(QuoteService(client))
    return registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Log environment mode
    log.info(f"Starting application in {settings.ENV.upper()} mode")
    if settings.is_production:
        log.info("Production mode: Debug disabled, docs disabled, stricter logging")
    else:
        log.info("Development mode: Debug enabled, docs available")

    # Startup
    init_db(engine)

    client = CoinGeckoClient()
    registry = build_registry(
        client,
        SessionLocal,
        sync_enabled=settings.SYNC_ENABLED,
        enrichment_enabled=settings.ENRICHMENT_ENABLED,
    )
    if not settings.SYNC_ENABLED:
        log.info("Scheduled market sync is disabled (SYNC_ENABLED=false)")

    # Missing credentials or services are fatal here
    try:
        await registry.start_all()
    except Exception:
        await client.aclose()
        raise
    app.state.registry = registry

    yield

    # Shutdown
    log.info("Shutting down services...")
    await registry.stop_all()
    await client.aclose()
    log.info("Application shutdown complete")


# Configure FastAPI based on environment
app = FastAPI(
    title="Market Sync",
    description="CoinGecko market data sync, enrichment and analytics",
    version="1.0.0",
    lifespan=lifespan,
    # Disable docs in production for security
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
    # Debug mode only in development
    debug=settings.debug_enabled,
)


app.include_router(analytics.router)
app.include_router(data.router)
app.include_router(health.router)
app.include_router(quotes.router)
app.include_router(stats.router)
app.include_router(sync.router)
