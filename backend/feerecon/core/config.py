# ============================================================
# feerecon/core/config.py
#
# LEARNING NOTE: This file reads ALL configuration from
# environment variables. This is the 12-factor app approach.
# Nothing about the fee store (URL, key, timeouts) is hardcoded.
# It lives in .env locally, and in the container env in production.
#
# Usage anywhere in the app:
#   from feerecon.core.config import settings
#   print(settings.STORE_BASE_URL)
# ============================================================

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    """
    All settings come from environment variables.
    Pydantic automatically reads .env file when running locally.
    In Docker / VPS, set these as real environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[3] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",          # Ignore extra vars in .env
    )

    # ── App Identity ─────────────────────────────────────────
    APP_NAME: str = "FeeRecon"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"        # development | production
    DEBUG: bool = False
    # Keep production logs at INFO and suppress verbose HTTP wire logs by default.
    HTTP_CLIENT_DEBUG_LOGS: bool = False

    # ── API Settings ─────────────────────────────────────────
    API_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",            # React dev server
        "http://localhost:5173",            # Vite dev server
    ]

    # ── External store ───────────────────────────────────────
    # The school backend that owns students, fee structures and
    # financial records. We only ever READ from it, except for
    # forwarding payment submissions.
    STORE_BASE_URL: str                     # e.g. http://backend:5000/api
    STORE_API_KEY: Optional[str] = None     # sent as Bearer token when set
    STORE_TIMEOUT_SECONDS: float = 10.0

    # ── Term calendar ────────────────────────────────────────
    # Pin the school's current term here. When left empty the
    # current term is derived from today's date (Jan–Apr Term 1,
    # May–Aug Term 2, Sep–Dec Term 3).
    CURRENT_TERM: Optional[str] = None      # e.g. "Term 2"
    CURRENT_YEAR: Optional[str] = None      # e.g. "2025"

    # Used when a student record has no createdAt timestamp.
    DEFAULT_ADMISSION_TERM: str = "Term 3"
    DEFAULT_ADMISSION_YEAR: str = "2025"

    # Admission timestamps are read in the school's local time
    SCHOOL_TIMEZONE: str = "Africa/Kampala"

    CURRENCY: str = "UGX"

    # ── Payment submission replay protection ─────────────────
    IDEMPOTENCY_TTL_SECONDS: int = 600
    # Shared local store so idempotency works across multiple workers.
    IDEMPOTENCY_DB_PATH: str = "/tmp/feerecon_idempotency.db"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Single instance, import this everywhere
settings = Settings()
