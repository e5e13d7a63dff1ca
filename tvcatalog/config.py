"""
Configuration management for the TV catalog.
Uses pydantic-settings for environment variable loading.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "TV Catalog"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # Entity source: "static" reads <entity>.json files, "http" fetches them
    data_source: str = "static"
    static_data_dir: str = "data"
    api_base: str = "https://iptv-org.github.io/api"
    api_fallback_bases: list[str] = []
    request_timeout_seconds: float = 10.0

    # Cache Configuration
    cache_ttl_seconds: int = 1800  # 30 minutes
    cache_namespace: str = "tvcatalog:"
    database_path: str = "data/tvcatalog_cache.db"

    # Logos
    fallback_logo_url: str = "assets/images/logos/logo.png"
    # Hosts known to time out; their logos are swapped for the fallback
    problematic_logo_domains: list[str] = [
        "imgur.com",
        "i.imgur.com",
        "imgbox.com",
        "postimg.cc",
        "imageban.ru",
    ]

    # Grouping
    uncategorized_label: str = "Uncategorized"
    unknown_channel_name: str = "Unknown channel"
    max_channels_per_category: int = 500
    max_categories: int = 200
    unlimited_loading: bool = True

    cancel_superseded_fetches: bool = True

    # Admin API key for protected endpoints
    admin_api_key: str = "dev-admin-key"

    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="TVCATALOG_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
