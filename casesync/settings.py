import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Advbox API Configuration
    advbox_api_base: str = Field(
        default="https://app.advbox.com.br/api/v1", alias="ADVBOX_API_BASE"
    )
    advbox_api_token: str = Field(default="", alias="ADVBOX_API_TOKEN")
    advbox_request_timeout: float = Field(default=30.0, alias="ADVBOX_REQUEST_TIMEOUT")
    advbox_max_retries: int = Field(default=5, alias="ADVBOX_MAX_RETRIES")
    advbox_backoff_base_seconds: float = Field(
        default=2.0, alias="ADVBOX_BACKOFF_BASE_SECONDS"
    )

    # Crawl Configuration
    crawl_page_size: int = Field(default=1000, alias="CRAWL_PAGE_SIZE")
    crawl_max_pages: int = Field(default=100, alias="CRAWL_MAX_PAGES")

    # Fallbacks used when the advbox_settings table cannot be read
    default_cache_ttl_minutes: int = Field(default=5, alias="DEFAULT_CACHE_TTL_MINUTES")
    default_delay_between_requests_ms: int = Field(
        default=1500, alias="DEFAULT_DELAY_BETWEEN_REQUESTS_MS"
    )

    # Scheduled refresh Configuration
    cache_refresh_enabled: bool = Field(default=True, alias="CACHE_REFRESH_ENABLED")
    cache_refresh_interval_minutes: int = Field(
        default=30, alias="CACHE_REFRESH_INTERVAL"
    )
    cache_refresh_pause_seconds: float = Field(
        default=1.0, alias="CACHE_REFRESH_PAUSE_SECONDS"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./casesync.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # HTTP server Configuration
    host: str = Field(default="0.0.0.0", alias="CASESYNC_HOST")
    port: int = Field(default=8000, alias="CASESYNC_PORT")
    debug: bool = Field(default=False, alias="CASESYNC_DEBUG")


global_settings = Settings.model_validate(dict(os.environ))
