"""
config.py — pydantic-settings Settings class.

All environment variables for the macrocal platform are declared here.
Both the pipeline and API import `settings` from this module.

Usage:
    from macrocal_shared.config import settings
    print(settings.supabase_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Supabase
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Calendar sources
    # -------------------------------------------------------------------------
    tradingeconomics_url: str = Field(default="https://tradingeconomics.com/calendar")
    forexfactory_url: str = Field(
        default="https://www.forexfactory.com/calendar?week=this"
    )
    # ForexFactory renders times in the viewer's zone; guests get this one.
    forexfactory_timezone: str = Field(default="UTC")

    # Comma-separated, highest priority first
    source_priority: str = Field(default="tradingeconomics,forexfactory")

    # -------------------------------------------------------------------------
    # Statistical APIs (Revision Tracker)
    # -------------------------------------------------------------------------
    fred_base_url: str = Field(default="https://api.stlouisfed.org/fred")
    fred_api_key: str = Field(default="")
    bls_base_url: str = Field(default="https://api.bls.gov/publicAPI/v2")
    bls_api_key: str = Field(default="")

    revision_batch_limit: int = Field(default=50)
    revision_window_days: int = Field(default=7)

    # -------------------------------------------------------------------------
    # Fetching / run limits
    # -------------------------------------------------------------------------
    http_user_agent: str = Field(default="macrocal-sync/0.1")
    fetch_timeout_s: float = Field(default=30.0)
    fetch_max_attempts: int = Field(default=3)
    fetch_base_delay_s: float = Field(default=1.0)
    fetch_max_delay_s: float = Field(default=30.0)

    run_deadline_s: float = Field(default=120.0)
    concurrent_fetch: bool = Field(default=False)
    sync_update_schedule: bool = Field(default=False)
    sync_error_sample_size: int = Field(default=10)

    # -------------------------------------------------------------------------
    # API server
    # -------------------------------------------------------------------------
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    cors_origins: str = Field(default="http://localhost:3000")
    pipeline_trigger_token: str = Field(default="")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def source_priority_list(self) -> list[str]:
        return [s.strip().lower() for s in self.source_priority.split(",") if s.strip()]

    @field_validator("supabase_url", "fred_base_url", "bls_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
