"""
models/sync.py — Pydantic models for the data_sources and sync_logs tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from macrocal_shared.constants import SourceKind, SyncStatus
from macrocal_shared.time_utils import to_utc_iso


class DataSource(BaseModel):
    """Matches the data_sources table row. `kind` is stored in the `type` column."""

    id: str | None = None
    name: str
    kind: SourceKind = Field(default="scraper", alias="type")
    base_url: str | None = None
    auth_config: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    last_sync_at: datetime | None = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "DataSource":
        return cls(**{**row, "auth_config": row.get("auth_config") or {}})

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind,
            "base_url": self.base_url,
            "enabled": self.enabled,
        }


class SyncLog(BaseModel):
    """Matches the sync_logs table row. Append-only: inserted once per run."""

    id: str | None = None
    data_source_id: str
    status: SyncStatus
    records_processed: int = 0
    errors_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "SyncLog":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "data_source_id": self.data_source_id,
            "status": self.status,
            "records_processed": self.records_processed,
            "errors_count": self.errors_count,
            "metadata": self.metadata,
            "started_at": to_utc_iso(self.started_at),
            "completed_at": to_utc_iso(self.completed_at) if self.completed_at else None,
        }
