"""
loaders/catalog.py — Indicator/release queries used by matching and maintenance.

Thin wrapper over the Supabase query builder so pipelines never build
PostgREST chains inline. Reads page through the table (PostgREST caps a
single response at 1000 rows by default).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from macrocal_shared.constants import TABLE_INDICATORS, TABLE_RELEASES
from macrocal_shared.db import get_supabase_client
from macrocal_shared.time_utils import to_utc_iso

log = structlog.get_logger(__name__)

PAGE_SIZE = 1000
INDICATOR_COLUMNS = "id, name, normalized_name, raw_name, country_code, category, impact, created_at"
RELEASE_COLUMNS = (
    "id, indicator_id, release_at, period, actual, forecast, previous, revised, revision_history"
)


class CatalogRepository:
    """Reads and targeted writes against the indicators and releases tables."""

    def __init__(self, *, client: Any = None, page_size: int = PAGE_SIZE) -> None:
        self._client = client if client is not None else get_supabase_client()
        self._page_size = page_size

    def _paginate(self, build_query) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = build_query().range(offset, offset + self._page_size - 1).execute().data or []
            rows.extend(page)
            if len(page) < self._page_size:
                return rows
            offset += self._page_size

    # ------------------------------------------------------------------
    # Indicators
    # ------------------------------------------------------------------

    def fetch_indicators(self) -> list[dict[str, Any]]:
        rows = self._paginate(
            lambda: self._client.table(TABLE_INDICATORS).select(INDICATOR_COLUMNS).order("id")
        )
        log.debug("indicators_fetched", count=len(rows))
        return rows

    def fetch_indicators_by_ids(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        if not ids:
            return {}
        response = (
            self._client.table(TABLE_INDICATORS)
            .select(INDICATOR_COLUMNS)
            .in_("id", sorted(set(ids)))
            .execute()
        )
        return {row["id"]: row for row in (response.data or [])}

    def insert_indicators(self, rows: list[dict[str, Any]]) -> None:
        """Create indicators; rows whose (country_code, normalized_name) exists are ignored."""
        if not rows:
            return
        (
            self._client.table(TABLE_INDICATORS)
            .upsert(rows, on_conflict="country_code,normalized_name", ignore_duplicates=True)
            .execute()
        )

    def update_indicator(self, indicator_id: str, fields: dict[str, Any]) -> None:
        self._client.table(TABLE_INDICATORS).update(fields).eq("id", indicator_id).execute()

    def delete_indicator(self, indicator_id: str) -> None:
        self._client.table(TABLE_INDICATORS).delete().eq("id", indicator_id).execute()

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    def releases_for(self, indicator_id: str) -> list[dict[str, Any]]:
        return self._paginate(
            lambda: self._client.table(TABLE_RELEASES)
            .select(RELEASE_COLUMNS)
            .eq("indicator_id", indicator_id)
            .order("release_at")
        )

    def reparent_release(self, release_id: str, indicator_id: str) -> None:
        (
            self._client.table(TABLE_RELEASES)
            .update({"indicator_id": indicator_id})
            .eq("id", release_id)
            .execute()
        )

    def delete_release(self, release_id: str) -> None:
        self._client.table(TABLE_RELEASES).delete().eq("id", release_id).execute()

    def update_release(self, release_id: str, fields: dict[str, Any]) -> None:
        self._client.table(TABLE_RELEASES).update(fields).eq("id", release_id).execute()

    def due_releases(self, now: datetime, *, limit: int) -> list[dict[str, Any]]:
        """Releases whose time has passed but whose actual is still unset."""
        response = (
            self._client.table(TABLE_RELEASES)
            .select(RELEASE_COLUMNS)
            .lte("release_at", to_utc_iso(now))
            .is_("actual", "null")
            .order("release_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    def recently_published(self, since: datetime, now: datetime, *, limit: int) -> list[dict[str, Any]]:
        """Releases published in [since, now] that already carry an actual."""
        response = (
            self._client.table(TABLE_RELEASES)
            .select(RELEASE_COLUMNS)
            .gte("release_at", to_utc_iso(since))
            .lte("release_at", to_utc_iso(now))
            .not_.is_("actual", "null")
            .order("release_at", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    def latest_published(self, indicator_ids: list[str], now: datetime) -> dict[str, str]:
        """indicator_id → id of its newest release at or before *now*."""
        if not indicator_ids:
            return {}
        ids = sorted(set(indicator_ids))
        rows = self._paginate(
            lambda: self._client.table(TABLE_RELEASES)
            .select("id, indicator_id, release_at")
            .in_("indicator_id", ids)
            .lte("release_at", to_utc_iso(now))
            .order("release_at", desc=True)
            .order("id")
        )
        latest: dict[str, str] = {}
        for row in rows:
            latest.setdefault(row["indicator_id"], row["id"])
        return latest
