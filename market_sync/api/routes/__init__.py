from market_sync.api.routes.analytics import router as analytics_router
from market_sync.api.routes.data import router as data_router
from market_sync.api.routes.health import router as health_router
from market_sync.api.routes.quotes import router as quotes_router
from market_sync.api.routes.stats import router as stats_router
from market_sync.api.routes.sync import router as sync_router

__all__ = [
    "analytics_router",
    "data_router",
    "health_router",
    "quotes_router",
    "stats_router",
    "sync_router",
]
