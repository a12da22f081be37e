from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "SmartShort"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database (async driver required: aiosqlite or asyncpg)
    database_url: str = "sqlite+aiosqlite:///./smartshort.db"
    database_echo: bool = False

    # Public URL used to build short links ({base_url}/r/{short_code})
    base_url: str = "http://127.0.0.1:8000"

    # Peers allowed to set X-Forwarded-For (JSON list in the environment,
    # e.g. TRUSTED_PROXIES='["10.0.0.2"]'). Empty: the header is ignored
    trusted_proxies: List[str] = []

    # Short code generation
    short_code_strategy: str = "random_bytes"  # Options: "random_bytes", "alphabet"
    short_code_length: int = 6  # Starting length, grows on repeated collisions
    attempts_per_length: int = 10
    max_allocation_attempts: int = 100
    custom_alias_min_length: int = 3
    custom_alias_max_length: int = 20

    # Click history
    click_history_cap: int = 1000

    # Expiry reaper
    reaper_enabled: bool = True
    reaper_interval_seconds: int = 3600  # Hourly sweep

    # Metadata enrichment
    enrichment_enabled: bool = True
    enrichment_timeout_seconds: float = 6.0  # Overall time limit, fetch included
    enrichment_fetch_timeout_seconds: float = 5.0
    enrichment_user_agent: str = "Mozilla/5.0 (compatible; SmartShort/1.0)"
    enrichment_max_bytes: int = 500_000  # Body bytes read per page
    enrichment_max_redirects: int = 5
    enrichment_block_private_addresses: bool = True  # Only fetch hosts that resolve to public IPs

    # Cache settings (enrichment results)
    cache_backend: str = "memory"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 3600  # Cache TTL in seconds (1 hour)

    # Real-time notifications
    notification_backend: str = "memory"  # Options: "redis_streams", "memory", "null"
    notification_channel_prefix: str = "link_events"
    notification_stream_maxlen: int = 1000
    notification_memory_max_channels: int = 10_000  # In-memory backend: owners kept before LRU eviction
    notification_timeout_seconds: float = 2.0

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 100

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
