"""Configuration management for anitoday."""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import PositiveFloat, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # TMDB (optional, enrichment is skipped without it)
    tmdb_api_key: str | None = None

    # Server
    port: PositiveInt = 7000
    external_url: str | None = None  # Public base URL used in redirect links

    # Torrent index
    index_transport: Literal["api", "rss"] = "api"
    index_base_url: str = "https://nyaa.si"
    index_category: str = "1_2"  # Anime - English-translated
    index_filter: str = "0"
    index_rate_limit: PositiveInt = 10  # Requests per second against the index
    search_mode: Literal["exhaustive", "first_hit"] = "exhaustive"
    search_max_pages: PositiveInt = 2

    # Debrid
    debrid_base_url: str = "https://api.real-debrid.com/rest/1.0"
    unlock_timing: Literal["lazy", "eager"] = "lazy"
    eager_unlock_limit: PositiveInt = 3
    unlock_poll_interval: PositiveFloat = 2.0
    unlock_poll_attempts: PositiveInt = 10
    submit_timeout: PositiveInt = 10

    # Schedule cache
    anilist_url: str = "https://graphql.anilist.co"
    kitsu_url: str = "https://kitsu.io/api/edge"
    metadata_timeout: PositiveInt = 5
    refresh_mode: Literal["interval", "daily"] = "interval"
    refresh_interval_minutes: PositiveInt = 15
    refresh_daily_hour: int = 4  # UTC
    enrichment_enabled: bool = True
    enrichment_delay: float = 0.3  # Seconds between per-entry enrichment calls

    # Network settings
    # Proxy configuration in the format http://host:port or socks5://host:port
    proxy: str | None = None

    @field_validator("proxy")
    @classmethod
    def validate_proxy(cls, v: str | None) -> str | None:
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https", "socks4", "socks5", "socks5h"):
            raise ValueError(
                "Proxy must be a valid URL with scheme http/https/socks4/socks5/socks5h"
            )
        if not parsed.netloc:
            raise ValueError("Proxy must have a host and port")
        return v

    @field_validator("refresh_daily_hour")
    @classmethod
    def validate_daily_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("refresh_daily_hour must be between 0 and 23")
        return v

    @field_validator("enrichment_delay")
    @classmethod
    def validate_enrichment_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("enrichment_delay must not be negative")
        return v

    # App settings
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def base_url(self) -> str:
        """Public base URL of this addon, without trailing slash."""
        if self.external_url:
            return self.external_url.rstrip("/")
        return f"http://localhost:{self.port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
