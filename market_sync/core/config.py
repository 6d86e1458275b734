from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Database (local SQLite file)
    DATABASE_URL: str = "sqlite:///./data/market_data.db"

    # CoinGecko API
    COINGECKO_API_KEY: str | None = None
    COINGECKO_BASE_URL: str = "https://api.coingecko.com/api/v3"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    SLACK_WEBHOOK_URL: str | None = None

    # Market data sync
    SYNC_ENABLED: bool = True
    SYNC_CATEGORIES: List[str] = ["base-ecosystem", "base-meme-coins"]
    SYNC_INTERVAL_SECONDS: int = 60 * 60  # 1 hour
    MIN_UPDATE_GAP_SECONDS: int = 55 * 60
    MAX_RETRIES: int = 3
    RETRY_DELAY_SECONDS: float = 5 * 60
    RETENTION_DAYS: int = 30
    PAGE_SIZE: int = 250
    PAGE_DELAY_SECONDS: float = 1.1
    MARKETS_ORDER: str = "volume_desc"
    PRICE_CHANGE_WINDOWS: str = "1h,24h,7d,14d,30d,200d"

    # Token info enrichment
    ENRICHMENT_ENABLED: bool = True
    ENRICHMENT_REQUESTS_PER_MINUTE: int = 30
    RATE_LIMIT_BACKOFF_SECONDS: float = 60.0
    READINESS_POLL_ATTEMPTS: int = 24
    READINESS_POLL_INTERVAL_SECONDS: float = 5.0
    PLATFORM_ID: str = "base"
    EXPLORER_DOMAIN: str = "basescan.org"
    DEX_IDENTIFIERS: List[str] = [
        "uniswap-v3-base",
        "uniswap-v4-base",
        "uniswap-v2-base",
        "aerodrome-base",
    ]

    # Quote lookups (price / trending / search)
    QUOTE_CACHE_TTL_SECONDS: float = 5 * 60
    QUOTE_MIN_INTERVAL_SECONDS: float = 1.0

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            # In production, minimum INFO level (ignore DEBUG)
            return self.LOG_LEVEL if self.LOG_LEVEL.upper() != "DEBUG" else "INFO"
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development

    @property
    def enrichment_delay_seconds(self) -> float:
        """Minimum spacing between detail requests derived from the per-minute budget."""
        return 60.0 / max(self.ENRICHMENT_REQUESTS_PER_MINUTE, 1)


settings = Settings()
