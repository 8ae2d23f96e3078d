"""
models/indicators.py — Pydantic models for the indicators and releases tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from macrocal_shared.constants import DEFAULT_IMPACT, IMPACT_LEVELS, Impact
from macrocal_shared.time_utils import to_utc_iso


class Indicator(BaseModel):
    """
    Matches the indicators table row.

    Unique key is (country_code, normalized_name).
    """

    id: str | None = None
    name: str                        # display name, e.g. "CPI (YoY)"
    normalized_name: str
    raw_name: str | None = None      # as scraped
    country_code: str                # 3-letter currency code, e.g. "USD"
    category: str = "Other"
    impact: Impact = DEFAULT_IMPACT
    source_name: str | None = None
    source_url: str | None = None
    created_at: datetime | None = None

    @field_validator("impact", mode="before")
    @classmethod
    def coerce_impact(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip().lower() in IMPACT_LEVELS:
            return v.strip().lower()
        return DEFAULT_IMPACT

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id", "created_at"}, exclude_none=True)


class RevisionRecord(BaseModel):
    """One entry of releases.revision_history. Never mutated once appended."""

    previous_actual: str | None
    new_actual: str
    revised_at: datetime

    def to_json(self) -> dict[str, Any]:
        return {
            "previous_actual": self.previous_actual,
            "new_actual": self.new_actual,
            "revised_at": to_utc_iso(self.revised_at),
        }


class Release(BaseModel):
    """
    Matches the releases table row.

    Natural key is (indicator_id, release_at).
    """

    id: str | None = None
    indicator_id: str
    release_at: datetime
    period: str | None = None
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None
    revised: str | None = None
    revision_history: list[RevisionRecord] = Field(default_factory=list)

    @field_validator("revision_history", mode="before")
    @classmethod
    def null_history_is_empty(cls, v: Any) -> Any:
        return v or []

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Release":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "indicator_id": self.indicator_id,
            "release_at": to_utc_iso(self.release_at),
            "period": self.period,
            "forecast": self.forecast,
            "previous": self.previous,
            "actual": self.actual,
        }
