"""
loaders/supabase_loader.py — Idempotent release upserts and run logging.

All schedule rows funnel through this module to write to Supabase. The loader:
  - Collapses rows sharing (indicator_id, release_at), keeping the last one
  - Batches rows to respect Supabase payload limits (500 rows / request)
  - Inserts with ON CONFLICT DO NOTHING on the natural key, so existing
    releases (and their actual values) are never overwritten
  - Optionally refreshes period/forecast/previous on releases that already
    existed (update_schedule=True)
  - Retries a rejected batch row by row so one bad row cannot sink 499 others
  - Registers data_sources rows and appends sync_logs rows

Usage:
    from macrocal_pipeline.loaders.supabase_loader import SupabaseLoader

    loader = SupabaseLoader()
    result = await loader.reconcile_releases(rows)
    print(result.inserted, result.skipped, result.conflicts)

    source = await loader.ensure_data_source("tradingeconomics", base_url=url)
    await loader.record_sync_log(SyncLog(data_source_id=source.id, ...))
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import polars as pl
import structlog

from macrocal_shared.constants import TABLE_DATA_SOURCES, TABLE_RELEASES, TABLE_SYNC_LOGS
from macrocal_shared.db import get_supabase_client
from macrocal_shared.models import DataSource, SyncLog
from macrocal_shared.time_utils import parse_timestamp, to_utc_iso
from macrocal_pipeline.errors import ConflictError

log = structlog.get_logger(__name__)

BATCH_SIZE = 500     # rows per Supabase request
RELEASE_KEY = ["indicator_id", "release_at"]
SCHEDULE_FIELDS = ("period", "forecast", "previous")

_RELEASE_SCHEMA = {
    "indicator_id": pl.String,
    "release_at": pl.String,
    "period": pl.String,
    "forecast": pl.String,
    "previous": pl.String,
    "actual": pl.String,
}


@dataclass
class ReconcileResult:
    """Summary of one reconcile_releases() call."""

    inserted: int = 0
    skipped: int = 0
    updated: int = 0
    conflicts: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.skipped

    def merge(self, other: "ReconcileResult") -> None:
        self.inserted += other.inserted
        self.skipped += other.skipped
        self.updated += other.updated
        self.conflicts += other.conflicts
        self.errors.extend(other.errors)


def dedupe_releases(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Collapse rows sharing (indicator_id, release_at); the last-seen row wins.

    Surviving rows keep their input order.
    """
    if not rows:
        return []
    df = pl.DataFrame(
        [{col: row.get(col) for col in _RELEASE_SCHEMA} for row in rows],
        schema=_RELEASE_SCHEMA,
    )
    df = df.unique(subset=RELEASE_KEY, keep="last", maintain_order=True)
    return df.to_dicts()


def _release_key(row: dict[str, Any]) -> tuple[str, datetime | None]:
    return (row["indicator_id"], parse_timestamp(row["release_at"]))


class SupabaseLoader:
    """
    Handles the release, data source and sync log writes of a sync run.

    Uses the service role key so RLS is bypassed for pipeline writes.
    """

    def __init__(self, batch_size: int = BATCH_SIZE, *, client: Any = None) -> None:
        self._batch_size = batch_size
        self._client = client if client is not None else get_supabase_client()

    # ------------------------------------------------------------------
    # Releases
    # ------------------------------------------------------------------

    async def reconcile_releases(
        self,
        rows: list[dict[str, Any]],
        *,
        update_schedule: bool = False,
    ) -> ReconcileResult:
        """
        Insert schedule rows that are not stored yet; leave existing ones alone.

        Args:
            rows:            {indicator_id, release_at, period, forecast,
                             previous, actual} dicts.
            update_schedule: Refresh period/forecast/previous on rows whose
                             key already exists. actual is never touched.

        Returns:
            ReconcileResult with inserted/skipped/updated/conflict counts.
        """
        result = ReconcileResult()
        t0 = time.monotonic()

        if not rows:
            log.warning("reconcile_empty")
            return result

        deduped = dedupe_releases(rows)
        loader_log = log.bind(table=TABLE_RELEASES, total_rows=len(rows), unique_rows=len(deduped))
        loader_log.info("reconcile_start")

        n_batches = math.ceil(len(deduped) / self._batch_size)
        for batch_idx in range(n_batches):
            start = batch_idx * self._batch_size
            batch = deduped[start : start + self._batch_size]
            try:
                batch_result = self._insert_batch(batch, update_schedule=update_schedule)
                loader_log.debug(
                    "batch_loaded",
                    batch=batch_idx + 1,
                    n_batches=n_batches,
                    inserted=batch_result.inserted,
                )
            except Exception as exc:
                loader_log.warning(
                    "batch_failed_retrying_rows",
                    batch=batch_idx + 1,
                    error=str(exc),
                )
                batch_result = self._insert_rows_individually(batch, update_schedule=update_schedule)
            result.merge(batch_result)

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        loader_log.info(
            "reconcile_complete",
            inserted=result.inserted,
            skipped=result.skipped,
            updated=result.updated,
            conflicts=result.conflicts,
            duration_ms=result.duration_ms,
        )
        return result

    def _insert_batch(self, batch: list[dict[str, Any]], *, update_schedule: bool) -> ReconcileResult:
        response = (
            self._client.table(TABLE_RELEASES)
            .upsert(batch, on_conflict=",".join(RELEASE_KEY), ignore_duplicates=True)
            .execute()
        )
        # With ignore_duplicates only the newly inserted rows come back
        inserted_keys = {_release_key(row) for row in (response.data or [])}
        existing = [row for row in batch if _release_key(row) not in inserted_keys]

        result = ReconcileResult(inserted=len(batch) - len(existing), skipped=len(existing))
        if update_schedule:
            for row in existing:
                if self._update_schedule(row):
                    result.updated += 1
        return result

    def _insert_rows_individually(
        self,
        batch: list[dict[str, Any]],
        *,
        update_schedule: bool,
    ) -> ReconcileResult:
        result = ReconcileResult()
        for row in batch:
            try:
                result.merge(self._insert_batch([row], update_schedule=update_schedule))
            except Exception as exc:
                conflict = ConflictError(
                    f"release {row.get('indicator_id')}@{row.get('release_at')} rejected: {exc}"
                )
                log.error("release_rejected", error=str(conflict))
                result.skipped += 1
                result.conflicts += 1
                result.errors.append(str(conflict))
        return result

    def _update_schedule(self, row: dict[str, Any]) -> bool:
        fields = {name: row[name] for name in SCHEDULE_FIELDS if row.get(name) is not None}
        if not fields:
            return False
        (
            self._client.table(TABLE_RELEASES)
            .update(fields)
            .eq("indicator_id", row["indicator_id"])
            .eq("release_at", row["release_at"])
            .execute()
        )
        return True

    # ------------------------------------------------------------------
    # Data sources
    # ------------------------------------------------------------------

    async def list_data_sources(self) -> list[DataSource]:
        response = self._client.table(TABLE_DATA_SOURCES).select("*").execute()
        return [DataSource.from_db_row(row) for row in (response.data or [])]

    async def ensure_data_source(
        self,
        name: str,
        *,
        kind: str = "scraper",
        base_url: str | None = None,
    ) -> DataSource:
        """
        Return the data_sources row for *name*, registering it if absent.

        An existing row (including its enabled flag) is left unchanged.
        """
        existing = (
            self._client.table(TABLE_DATA_SOURCES).select("*").eq("name", name).limit(1).execute()
        )
        if existing.data:
            return DataSource.from_db_row(existing.data[0])

        source = DataSource(name=name, kind=kind, base_url=base_url)
        (
            self._client.table(TABLE_DATA_SOURCES)
            .upsert(source.to_insert_dict(), on_conflict="name", ignore_duplicates=True)
            .execute()
        )
        created = (
            self._client.table(TABLE_DATA_SOURCES).select("*").eq("name", name).limit(1).execute()
        )
        if not created.data:
            raise ConflictError(f"data source {name!r} could not be registered")
        log.info("data_source_registered", name=name, kind=kind)
        return DataSource.from_db_row(created.data[0])

    async def touch_data_source(self, data_source_id: str, synced_at: datetime) -> None:
        (
            self._client.table(TABLE_DATA_SOURCES)
            .update({"last_sync_at": to_utc_iso(synced_at)})
            .eq("id", data_source_id)
            .execute()
        )

    # ------------------------------------------------------------------
    # Sync logs
    # ------------------------------------------------------------------

    async def record_sync_log(self, sync_log: SyncLog) -> str | None:
        """
        Append one sync_logs row. Rows are never updated afterwards.

        Returns:
            The new row id when the store returns it.
        """
        response = self._client.table(TABLE_SYNC_LOGS).insert(sync_log.to_insert_dict()).execute()
        row_id = response.data[0].get("id") if response.data else None
        log.info(
            "sync_log_recorded",
            sync_log_id=row_id,
            status=sync_log.status,
            records_processed=sync_log.records_processed,
            errors_count=sync_log.errors_count,
        )
        return row_id

    async def recent_sync_logs(self, limit: int = 20) -> list[SyncLog]:
        response = (
            self._client.table(TABLE_SYNC_LOGS)
            .select("*")
            .order("started_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [SyncLog.from_db_row(row) for row in (response.data or [])]
