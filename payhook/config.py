"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything required is missing.

Worker tuning values are forgiving: an invalid or out-of-range value falls back
to the default instead of refusing to boot.
"""
import logging
import re
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

DEFAULT_WORKER_COUNT = 5
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_PROCESS_DELAY_SECONDS = 0.1

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) and unit strings such as "100ms", "2s",
    "1m30s". Raises ValueError for anything else, including negative values.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if not text:
            raise ValueError("empty duration")
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ValueError(f"invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError(f"negative duration: {value!r}")
    return seconds


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3333
    log_level: str = "INFO"
    allowed_origins: str = "*"  # Comma-separated CORS origins

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Redis (optional side-channel; empty string disables it)
    redis_url: str = "redis://localhost:6379/0"

    # Sentry
    sentry_dsn: str = ""

    # Worker pool
    worker_pool_size: int = DEFAULT_WORKER_COUNT
    worker_poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    worker_process_delay: float = DEFAULT_PROCESS_DELAY_SECONDS

    @field_validator("worker_pool_size", mode="before")
    @classmethod
    def _parse_worker_count(cls, value: Any) -> int:
        try:
            count = int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid WORKER_POOL_SIZE %r, using %d", value, DEFAULT_WORKER_COUNT)
            return DEFAULT_WORKER_COUNT
        if count < 1:
            logger.warning("WORKER_POOL_SIZE must be >= 1 (got %d), using %d", count, DEFAULT_WORKER_COUNT)
            return DEFAULT_WORKER_COUNT
        return count

    @field_validator("worker_poll_interval", "worker_process_delay", mode="before")
    @classmethod
    def _parse_durations(cls, value: Any, info) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            return parse_duration(value)
        except ValueError:
            logger.warning("Invalid %s %r, using %ss", info.field_name.upper(), value, default)
            return default

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
