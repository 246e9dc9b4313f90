"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Per-provider base URLs, API keys and request spacing
- Cache TTLs and provider health policy (error threshold, cooldown)
- Durable store backend selection
- Converts comma-separated strings to lists (CORS origins)

Usage:
    from core.config import settings

    print(settings.coingecko_base_url)
    print(settings.min_intervals_ms)  # {"coingecko": 1500, ...}
"""

from typing import Dict, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        coingecko_base_url: Base URL of the primary provider
        coincap_base_url: Base URL of the secondary provider
        coinpaprika_base_url: Base URL of the tertiary provider
        coingecko_api_key / coincap_api_key: Optional provider credentials
        *_min_interval_ms: Minimum spacing between two calls to one provider
        metadata_timeout / history_timeout: Per-request timeouts in seconds
        cache_ttl_*: Result cache TTLs per operation kind (seconds)
        max_consecutive_errors: Errors before a provider is marked unavailable
        provider_cooldown_seconds: How long an unavailable provider is skipped
        history_max_age_seconds: Stored history older than this is not served
        durable_backend: "duckdb" or "memory"
        duckdb_path: Location of the DuckDB file
        stream_interval_seconds: Price stream polling period
        stream_coin_limit: Number of assets pushed on each stream tick
    """

    # ============================================
    # Provider Endpoints
    # ============================================

    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="CoinGecko API base URL (primary provider)"
    )

    coincap_base_url: str = Field(
        default="https://api.coincap.io/v2",
        description="CoinCap API base URL (secondary provider)"
    )

    coinpaprika_base_url: str = Field(
        default="https://api.coinpaprika.com/v1",
        description="CoinPaprika API base URL (tertiary provider)"
    )

    coingecko_api_key: str = Field(
        default="",
        description="CoinGecko demo API key (optional)"
    )

    coincap_api_key: str = Field(
        default="",
        description="CoinCap API key (optional)"
    )

    # ============================================
    # Rate Limiting & Timeouts
    # ============================================

    coingecko_min_interval_ms: int = Field(
        default=1500,
        description="Minimum milliseconds between CoinGecko calls (~40 req/min free tier)"
    )

    coincap_min_interval_ms: int = Field(
        default=500,
        description="Minimum milliseconds between CoinCap calls"
    )

    coinpaprika_min_interval_ms: int = Field(
        default=100,
        description="Minimum milliseconds between CoinPaprika calls"
    )

    metadata_timeout: float = Field(
        default=10.0,
        description="Timeout for list/detail/search requests in seconds"
    )

    history_timeout: float = Field(
        default=15.0,
        description="Timeout for price history requests in seconds"
    )

    # ============================================
    # Caching Configuration
    # ============================================

    cache_ttl_list: int = Field(default=60, description="Asset list cache TTL (seconds)")
    cache_ttl_detail: int = Field(default=120, description="Asset detail cache TTL (seconds)")
    cache_ttl_history: int = Field(default=300, description="Price history cache TTL (seconds)")
    cache_ttl_search: int = Field(default=600, description="Search results cache TTL (seconds)")

    history_max_age_seconds: int = Field(
        default=3600,
        description="Stored history whose newest point is older than this is treated as stale"
    )

    # ============================================
    # Provider Health Policy
    # ============================================

    max_consecutive_errors: int = Field(
        default=3,
        description="Consecutive errors before a provider is marked unavailable"
    )

    provider_cooldown_seconds: int = Field(
        default=300,
        description="Seconds an unavailable provider is skipped before re-enabling"
    )

    # ============================================
    # Durable Store
    # ============================================

    durable_backend: str = Field(
        default="duckdb",
        description="Durable cache backend (duckdb, memory)"
    )

    duckdb_path: str = Field(
        default="data/crypto.duckdb",
        description="DuckDB database file path"
    )

    # ============================================
    # Price Streaming
    # ============================================

    stream_interval_seconds: int = Field(
        default=30,
        description="Seconds between price stream broadcasts"
    )

    stream_coin_limit: int = Field(
        default=100,
        description="Number of top assets included in each broadcast"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(default="0.0.0.0", description="FastAPI server host address")
    app_port: int = Field(default=8000, description="FastAPI server port")

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(default=True, description="Enable debug mode")

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Derived Values
    # ============================================

    @property
    def min_intervals_ms(self) -> Dict[str, int]:
        """
        Per-provider minimum request spacing, keyed by provider name.

        Example:
            >>> settings.min_intervals_ms
            {'coingecko': 1500, 'coincap': 500, 'coinpaprika': 100}
        """
        return {
            "coingecko": self.coingecko_min_interval_ms,
            "coincap": self.coincap_min_interval_ms,
            "coinpaprika": self.coinpaprika_min_interval_ms,
        }

    @property
    def cache_ttls(self) -> Dict[str, int]:
        """Result cache TTL in seconds for each operation kind."""
        return {
            "list": self.cache_ttl_list,
            "detail": self.cache_ttl_detail,
            "history": self.cache_ttl_history,
            "search": self.cache_ttl_search,
        }

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Example:
            >>> settings.cors_origins_list
            ['http://localhost:3000', 'http://localhost:5173']
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def use_duckdb(self) -> bool:
        """True when the durable cache should be backed by DuckDB."""
        return self.durable_backend.lower() == "duckdb"

    def get_coingecko_headers(self) -> dict:
        """
        HTTP headers for CoinGecko requests.

        The demo key is optional; public endpoints work without it at a lower rate.
        """
        headers = {"Accept": "application/json"}
        if self.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self.coingecko_api_key
        return headers

    def get_coincap_headers(self) -> dict:
        """HTTP headers for CoinCap requests (bearer token when configured)."""
        headers = {"Accept": "application/json"}
        if self.coincap_api_key:
            headers["Authorization"] = f"Bearer {self.coincap_api_key}"
        return headers


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration() -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # logging.py imports config.py, so the logger is imported lazily here
    from core.logging import logger

    for name, base_url in (
        ("COINGECKO_BASE_URL", settings.coingecko_base_url),
        ("COINCAP_BASE_URL", settings.coincap_base_url),
        ("COINPAPRIKA_BASE_URL", settings.coinpaprika_base_url),
    ):
        if not base_url.startswith("http"):
            raise ValueError(f"{name} must be an http(s) URL, got '{base_url}'")

    for provider, interval in settings.min_intervals_ms.items():
        if interval < 0:
            raise ValueError(f"Minimum interval for {provider} cannot be negative: {interval}")

    for kind, ttl in settings.cache_ttls.items():
        if ttl <= 0:
            raise ValueError(f"Cache TTL for '{kind}' must be positive, got {ttl}")

    if settings.metadata_timeout <= 0 or settings.history_timeout <= 0:
        raise ValueError("Request timeouts must be positive")

    if settings.max_consecutive_errors < 1:
        raise ValueError("MAX_CONSECUTIVE_ERRORS must be at least 1")

    if settings.provider_cooldown_seconds <= 0:
        raise ValueError("PROVIDER_COOLDOWN_SECONDS must be positive")

    valid_backends = ["duckdb", "memory"]
    if settings.durable_backend.lower() not in valid_backends:
        raise ValueError(
            f"Invalid DURABLE_BACKEND: '{settings.durable_backend}'. "
            f"Must be one of: {', '.join(valid_backends)}"
        )

    if not (1 <= settings.app_port <= 65535):
        raise ValueError(f"Invalid port number: {settings.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Providers: coingecko={settings.coingecko_base_url}, "
                f"coincap={settings.coincap_base_url}, coinpaprika={settings.coinpaprika_base_url}")
    logger.info(f"Request spacing (ms): {settings.min_intervals_ms}")
    logger.info(f"Cache TTLs (s): {settings.cache_ttls}")
    logger.info(f"Durable cache: {'DuckDB at ' + settings.duckdb_path if settings.use_duckdb else 'In-Memory'}")
    logger.info(f"Server: {settings.app_host}:{settings.app_port}")
    logger.info(f"Log level: {settings.log_level.upper()}")
