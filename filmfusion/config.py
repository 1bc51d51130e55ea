"""
Application Settings

Values come from the environment (a local .env file is loaded first).
Everything has a development default so the API boots with no setup:
SQLite on disk, in-memory cache only, TMDB calls fail until a key is set.
"""

import os
import sys
from typing import List

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel

load_dotenv()

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
]


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime configuration for the API"""
    app_env: str = "development"
    enable_redis: bool = False
    redis_url: str = "redis://localhost:6379"
    redis_connect_timeout: float = 3.0

    database_url: str = "sqlite+aiosqlite:///data/filmfusion.db"

    tmdb_api_key: str = ""
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_timeout: float = 10.0

    log_level: str = "INFO"
    cors_origins: List[str] = DEFAULT_CORS_ORIGINS

    @property
    def redis_enabled(self) -> bool:
        """Redis is used in production, or anywhere ENABLE_REDIS is set"""
        return self.app_env == "production" or self.enable_redis

    @classmethod
    def from_env(cls) -> "Settings":
        origins = list(DEFAULT_CORS_ORIGINS)
        extra = os.getenv("CORS_ORIGINS")
        if extra:
            origins.extend(o.strip() for o in extra.split(",") if o.strip())

        return cls(
            app_env=os.getenv("APP_ENV", "development"),
            enable_redis=_env_flag("ENABLE_REDIS"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            redis_connect_timeout=float(os.getenv("REDIS_CONNECT_TIMEOUT", "3.0")),
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///data/filmfusion.db"),
            tmdb_api_key=os.getenv("TMDB_API_KEY", ""),
            tmdb_base_url=os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3"),
            tmdb_timeout=float(os.getenv("TMDB_TIMEOUT", "10")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=origins,
        )


def configure_logging(level: str = "INFO"):
    """Replace loguru's default sink with a single stderr sink at `level`"""
    logger.remove()
    logger.add(sys.stderr, level=level)
