import os
import logging
from typing import List
from urllib.parse import urlparse
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

ENVIRONMENTS = {"development", "staging", "production"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.error(f"Invalid integer for {name}")
        raise ValueError(f"Configuration error: {name} must be an integer") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    APP_ENV = os.getenv("APP_ENV", "development").lower()

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/tree_service.db")
    DB_POOL_SIZE = _env_int("DB_POOL_SIZE", 10)
    DB_MAX_OVERFLOW = _env_int("DB_MAX_OVERFLOW", 5)
    DB_ECHO = _env_bool("DB_ECHO")

    REDIS_URL = os.getenv("REDIS_URL") or None
    CACHE_TTL_SECONDS = _env_int("CACHE_TTL_SECONDS", 300)
    CACHE_MAX_SIZE = _env_int("CACHE_MAX_SIZE", 1000)

    DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 100)
    MAX_LABEL_LENGTH = _env_int("MAX_LABEL_LENGTH", 100)

    RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
    RATE_LIMIT_WRITE = os.getenv("RATE_LIMIT_WRITE", "30/minute")
    DISABLE_RATE_LIMIT = _env_bool("DISABLE_RATE_LIMIT")

    ALLOWED_ORIGINS = _env_list(
        "ALLOWED_ORIGINS",
        ["http://localhost:3000", "http://127.0.0.1:3000"],
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def is_production(cls) -> bool:
        return cls.APP_ENV == "production"

    @classmethod
    def validate(cls) -> None:
        if cls.APP_ENV not in ENVIRONMENTS:
            raise ValueError(f"Configuration error: unknown APP_ENV '{cls.APP_ENV}'")

        for name in ("DB_POOL_SIZE", "CACHE_TTL_SECONDS", "CACHE_MAX_SIZE",
                     "DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE", "MAX_LABEL_LENGTH"):
            if getattr(cls, name) <= 0:
                raise ValueError(f"Configuration error: {name} must be positive")

        if cls.DEFAULT_PAGE_SIZE > cls.MAX_PAGE_SIZE:
            raise ValueError("Configuration error: DEFAULT_PAGE_SIZE exceeds MAX_PAGE_SIZE")

        if cls.is_production():
            parsed = urlparse(cls.DATABASE_URL)
            if parsed.scheme.startswith("sqlite"):
                raise ValueError("Configuration error: SQLite is not allowed in production")
            if (parsed.hostname or "").lower() in ("localhost", "127.0.0.1"):
                raise ValueError("Configuration error: localhost database is not allowed in production")
