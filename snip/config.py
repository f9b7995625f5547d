import os
from typing import Optional

from pydantic import BaseModel

APP_NAME = "Snip - URL Shortener"
APP_VERSION = "0.1.0"


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


class Settings(BaseModel):
    base_url: str = "http://localhost:8000"
    short_code_length: int = 7
    max_allocation_attempts: int = 5

    # Feature flags
    enable_analytics: bool = False
    enable_custom_codes: bool = False
    enable_caching: bool = False
    enable_rate_limiting: bool = False

    cache_ttl_seconds: int = 3600
    cache_flush_on_startup: bool = False

    rate_limit_window_ms: int = 900_000
    rate_limit_max_requests: int = 100
    rate_limit_sweep_seconds: int = 60

    def features(self) -> dict[str, bool]:
        return {
            "analytics": self.enable_analytics,
            "customCodes": self.enable_custom_codes,
            "caching": self.enable_caching,
            "rateLimiting": self.enable_rate_limiting,
        }


DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
DB_POOL_MIN = int(os.getenv("DB_POOL_MIN", 5))
DB_POOL_MAX = int(os.getenv("DB_POOL_MAX", 20))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE: Optional[str] = os.getenv("LOG_FILE")


def load_settings() -> Settings:
    """Build the runtime settings from environment variables."""

    return Settings(
        base_url=os.getenv("BASE_URL", "http://localhost:8000").rstrip("/"),
        short_code_length=int(os.getenv("SHORT_CODE_LENGTH", 7)),
        max_allocation_attempts=int(os.getenv("MAX_ALLOCATION_ATTEMPTS", 5)),
        enable_analytics=_flag("ENABLE_ANALYTICS"),
        enable_custom_codes=_flag("ENABLE_CUSTOM_CODES"),
        enable_caching=_flag("ENABLE_CACHING"),
        enable_rate_limiting=_flag("ENABLE_RATE_LIMITING"),
        cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", 3600)),
        cache_flush_on_startup=_flag("CACHE_FLUSH_ON_STARTUP"),
        rate_limit_window_ms=int(os.getenv("RATE_LIMIT_WINDOW_MS", 900_000)),
        rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", 100)),
        rate_limit_sweep_seconds=int(os.getenv("RATE_LIMIT_SWEEP_SECONDS", 60)),
    )
