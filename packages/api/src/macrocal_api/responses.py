"""Response models for the trigger endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ReleaseSample(BaseModel):
    indicator_name: str
    raw_indicator_name: str
    country_code: str
    category: str
    impact: str
    release_at: str
    period: str | None = None
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None


class SyncResponse(BaseModel):
    success: bool
    source: str | None = None
    fallback: bool = False
    status: str
    releases_found: int = 0
    releases_inserted: int = 0
    releases_skipped: int = 0
    errors_count: int = 0
    duration_ms: int = 0
    deadline_exceeded: bool = False
    sample: list[ReleaseSample] | None = None


class RevisionResponse(BaseModel):
    success: bool
    releases_checked: int = 0
    releases_updated: int = 0
    revisions_recorded: int = 0
    skipped_unmapped: int = 0
    skipped_unavailable: int = 0
    skipped_superseded: int = 0
    errors_count: int = 0
    duration_ms: int = 0


class MaintenanceResponse(BaseModel):
    success: bool
    groups_found: int = 0
    groups_merged: int = 0
    groups_failed: int = 0
    indicators_deleted: int = 0
    indicators_renamed: int = 0
    releases_moved: int = 0
    releases_deleted: int = 0
    impacts_normalized: int = 0
    errors_count: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_ms: int = 0


class ErrorBody(BaseModel):
    error: str
    details: dict[str, Any] = Field(default_factory=dict)


def error_response(message: str, *, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the `{error: message}` body returned by failed triggers."""
    body: dict[str, Any] = {"error": message}
    if details:
        body["details"] = details
    return body
