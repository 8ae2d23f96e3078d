"""Shared FastAPI dependencies.

Each collaborator the trigger endpoints need is a dependency so tests can
swap it through `app.dependency_overrides`.
"""

from __future__ import annotations

from typing import Any

from macrocal_shared.db import get_supabase_client
from macrocal_pipeline.pipelines.orchestrator import build_calendar_sources
from macrocal_pipeline.sources.base import CalendarSource
from macrocal_pipeline.sources.statistical import StatisticalSource

from macrocal_api.middleware.auth import require_trigger_token


def get_pipeline_client() -> Any:
    """Service-role Supabase client used by every pipeline run."""
    return get_supabase_client()


def get_calendar_sources() -> list[CalendarSource]:
    return build_calendar_sources()


def get_statistical_sources() -> list[StatisticalSource] | None:
    """None lets the revision tracker build FRED/BLS from settings and data_sources."""
    return None


__all__ = [
    "get_calendar_sources",
    "get_pipeline_client",
    "get_statistical_sources",
    "get_supabase_client",
    "require_trigger_token",
]
