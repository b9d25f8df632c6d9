"""
Application configuration — environment-aware settings.

Values come from environment variables; a local .env file is loaded first.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv()


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # Database: SQLite (default) or PostgreSQL (set DATABASE_URL=postgresql://...)
    DATABASE = os.environ.get("DATABASE_URL", str(BASE_DIR / "learning_quest.db"))
    # "sqlite", "postgres" or "memory"; inferred from DATABASE when empty
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "")
    API_PREFIX = os.environ.get("API_PREFIX", "/api")

    # Session security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400

    # Game economy
    INITIAL_SPINS = _int_env("INITIAL_SPINS", 3)
    BONUS_SPIN_THRESHOLD = _int_env("BONUS_SPIN_THRESHOLD", 4)
    QUIZ_LENGTH = _int_env("QUIZ_LENGTH", 5)
    XP_PER_CORRECT_ANSWER = _int_env("XP_PER_CORRECT_ANSWER", 20)

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Redis (catalog cache, rate limits)
    REDIS_URL = os.environ.get("REDIS_URL", "")
    CATALOG_CACHE_TTL = _int_env("CATALOG_CACHE_TTL", 300)

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"
    SPIN_RATE_LIMIT = os.environ.get("SPIN_RATE_LIMIT", "30 per minute")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory loses all data on restart.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
