"""
Application configuration: environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")

    # Relational database: PostgreSQL url or SQLite path. Empty (or a template
    # placeholder) selects the key-value local store instead.
    DATABASE = os.environ.get("DATABASE_URL", "")

    # Key-value local store: "memory://", "redis://host:6379/0" or a JSON file path
    LOCAL_STORE_URL = os.environ.get("LOCAL_STORE_URL", str(BASE_DIR / "data" / "local_store.json"))
    LOCAL_STORE_PREFIX = os.environ.get("LOCAL_STORE_PREFIX", "school2026_")

    # Session security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400

    MAX_CONTENT_LENGTH = 8 * 1024 * 1024  # 8 MB, certification photos arrive as data URLs

    # Gemini
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_IMAGE_MODEL = os.environ.get(
        "GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation",
    )

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"

    # Spreadsheet push
    SHEET_EXPORT_TIMEOUT = float(os.environ.get("SHEET_EXPORT_TIMEOUT", "10"))


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

        if cls.LOCAL_STORE_URL.startswith("memory://") and not cls.DATABASE:
            errors.append("LOCAL_STORE_URL=memory:// loses all data on restart; "
                          "set DATABASE_URL or a persistent LOCAL_STORE_URL.")

        if not cls.GOOGLE_API_KEY:
            warnings.warn("GOOGLE_API_KEY is not set; AI features will return fallback text.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE = ""
    LOCAL_STORE_URL = "memory://"
    GOOGLE_API_KEY = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
