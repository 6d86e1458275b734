# Services package
from market_sync.services.analytics_service import AnalyticsService
from market_sync.services.enrichment_service import TokenInfoService
from market_sync.services.ingestion_service import IngestionService
from market_sync.services.quote_service import QuoteService
from market_sync.services.sync_service import MarketSyncService

__all__ = [
    "AnalyticsService",
    "IngestionService",
    "MarketSyncService",
    "QuoteService",
    "TokenInfoService",
]
