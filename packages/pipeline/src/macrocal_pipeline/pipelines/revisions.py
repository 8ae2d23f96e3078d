"""
pipelines/revisions.py — Fill in observed values and record revisions.

Orchestrates:
  1. Select due releases (release_at <= now, actual unset), newest first,
     capped at settings.revision_batch_limit
  2. Select recently published releases (last settings.revision_window_days)
     whose actual is set, so late revisions are caught
  3. Map each indicator (country, normalized name) to a statistical series
     (FRED first, then BLS); unmapped → skipped
  4. Keep only each indicator's newest release at or before now; the latest
     observation describes that period, so older rows are superseded
  5. Fetch the latest observation; unavailable → skipped
  6. Apply apply_observed_value(): set actual, or overwrite it and append a
     RevisionRecord when the published value changed

Runs independently of the schedule sync, typically every 15 minutes.

Usage:
    from macrocal_pipeline.pipelines.revisions import run
    result = await run(limit=50)
    print(result.releases_updated, result.revisions_recorded)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from macrocal_shared.config import settings
from macrocal_shared.models import Release, RevisionRecord
from macrocal_shared.time_utils import utc_now
from macrocal_pipeline.loaders.catalog import CatalogRepository
from macrocal_pipeline.loaders.supabase_loader import SupabaseLoader
from macrocal_pipeline.sources.bls import BlsSource
from macrocal_pipeline.sources.fred import FredSource
from macrocal_pipeline.sources.statistical import StatisticalSource
from macrocal_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="revisions")

_NUMERIC_NOISE = str.maketrans("", "", "%,$€£¥ ")
_MAGNITUDES = {"K": Decimal("1e3"), "M": Decimal("1e6"), "B": Decimal("1e9"), "T": Decimal("1e12")}


@dataclass
class RevisionResult:
    releases_checked: int = 0
    releases_updated: int = 0
    revisions_recorded: int = 0
    skipped_unmapped: int = 0
    skipped_unavailable: int = 0
    skipped_superseded: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "releases_checked": self.releases_checked,
            "releases_updated": self.releases_updated,
            "revisions_recorded": self.revisions_recorded,
            "skipped_unmapped": self.skipped_unmapped,
            "skipped_unavailable": self.skipped_unavailable,
            "skipped_superseded": self.skipped_superseded,
            "errors_count": len(self.errors),
            "duration_ms": self.duration_ms,
        }


def _as_number(text: str) -> Decimal | None:
    cleaned = text.translate(_NUMERIC_NOISE).upper()
    scale = Decimal(1)
    if cleaned[-1:] in _MAGNITUDES:
        scale = _MAGNITUDES[cleaned[-1]]
        cleaned = cleaned[:-1]
    try:
        return Decimal(cleaned) * scale
    except InvalidOperation:
        return None


def values_equal(left: str | None, right: str | None) -> bool:
    """Compare two published values: "3.40%" equals "3.4", "220K" equals "220000"."""
    if left is None or right is None:
        return left is right
    if left.strip() == right.strip():
        return True
    left_num, right_num = _as_number(left), _as_number(right)
    return left_num is not None and left_num == right_num


def apply_observed_value(
    release: Release,
    observed: str,
    now: datetime,
) -> dict[str, Any] | None:
    """
    Compute the row update for an observed value.

    - actual unset         → {"actual": observed}
    - actual equal         → None (nothing to write, no record)
    - actual differs       → new actual, `revised` = old value, and the
                             history extended by one RevisionRecord

    Existing history entries are carried over unchanged.
    """
    if release.actual is None:
        return {"actual": observed}
    if values_equal(release.actual, observed):
        return None

    record = RevisionRecord(
        previous_actual=release.actual,
        new_actual=observed,
        revised_at=now,
    )
    history = [entry.to_json() for entry in release.revision_history]
    return {
        "actual": observed,
        "revised": release.actual,
        "revision_history": [*history, record.to_json()],
    }


def build_statistical_sources(data_sources: list[Any] | None = None) -> list[StatisticalSource]:
    """
    FRED then BLS, skipping clients that are disabled.

    A data_sources row named "fred"/"bls" can disable a client or supply its
    API key through auth_config.api_key when the environment does not.
    """
    rows = {ds.name.lower(): ds for ds in (data_sources or [])}
    clients: list[StatisticalSource] = []
    for cls, env_key in ((FredSource, settings.fred_api_key), (BlsSource, settings.bls_api_key)):
        row = rows.get(cls.name)
        if row is not None and not row.enabled:
            continue
        api_key = env_key or (row.auth_config.get("api_key", "") if row is not None else "")
        client = cls(api_key=api_key)
        if client.enabled:
            clients.append(client)
    return clients


async def _lookup(
    clients: list[StatisticalSource],
    country_code: str,
    normalized_name: str,
) -> tuple[bool, str | None]:
    """(mapped, value) from the first client that maps the indicator and has data."""
    mapped = False
    for client in clients:
        series_id = client.series_for(country_code, normalized_name)
        if series_id is None:
            continue
        mapped = True
        value = await client.latest_value(series_id)
        if value is not None:
            return True, value
    return mapped, None


async def run(
    *,
    limit: int | None = None,
    window_days: int | None = None,
    dry_run: bool = False,
    client: Any = None,
    statistical_sources: list[StatisticalSource] | None = None,
    now: datetime | None = None,
) -> RevisionResult:
    """
    Run the revision tracker once.

    Args:
        limit:               Max due releases per run (settings.revision_batch_limit).
        window_days:         Look-back for revisions (settings.revision_window_days).
        dry_run:             Compute updates but do not write them.
        client:              Supabase client override (tests).
        statistical_sources: Client override; defaults to FRED + BLS.
        now:                 Clock override (tests).

    Returns:
        RevisionResult with per-outcome counts.
    """
    t0 = time.monotonic()
    now = now or utc_now()
    limit = limit or settings.revision_batch_limit
    window_days = settings.revision_window_days if window_days is None else window_days

    catalog = CatalogRepository(client=client)
    if statistical_sources is None:
        loader = SupabaseLoader(client=client)
        statistical_sources = build_statistical_sources(await loader.list_data_sources())

    run_log = log.bind(dry_run=dry_run)
    run_log.info("revisions_start", limit=limit, window_days=window_days)

    result = RevisionResult()
    if not statistical_sources:
        run_log.warning("no_statistical_sources")
        result.duration_ms = int((time.monotonic() - t0) * 1000)
        return result

    candidates: dict[str, dict[str, Any]] = {}
    for row in catalog.due_releases(now, limit=limit):
        candidates[row["id"]] = row
    if window_days > 0:
        since = now - timedelta(days=window_days)
        for row in catalog.recently_published(since, now, limit=limit):
            candidates.setdefault(row["id"], row)

    indicator_ids = [row["indicator_id"] for row in candidates.values()]
    indicators = catalog.fetch_indicators_by_ids(indicator_ids)
    latest = catalog.latest_published(indicator_ids, now)
    result.releases_checked = len(candidates)

    for row in candidates.values():
        release = Release.from_db_row(row)
        indicator = indicators.get(release.indicator_id)
        if indicator is None:
            result.skipped_unmapped += 1
            continue
        if latest.get(release.indicator_id) != release.id:
            result.skipped_superseded += 1
            continue

        mapped, observed = await _lookup(
            statistical_sources,
            indicator["country_code"],
            indicator.get("normalized_name") or indicator["name"],
        )
        if not mapped:
            result.skipped_unmapped += 1
            continue
        if observed is None:
            result.skipped_unavailable += 1
            continue

        update = apply_observed_value(release, observed, now)
        if update is None:
            continue

        if not dry_run:
            try:
                catalog.update_release(release.id, update)
            except Exception as exc:
                message = f"update failed for {indicator['name']}: {exc}"
                run_log.error("release_update_failed", release_id=release.id, error=str(exc))
                result.errors.append(message)
                continue

        result.releases_updated += 1
        if "revision_history" in update:
            result.revisions_recorded += 1
            run_log.info(
                "revision_recorded",
                release_id=release.id,
                indicator=indicator["name"],
                previous=release.actual,
                new=observed,
            )

    result.duration_ms = int((time.monotonic() - t0) * 1000)
    run_log.info(
        "revisions_complete",
        checked=result.releases_checked,
        updated=result.releases_updated,
        revisions=result.revisions_recorded,
        errors=len(result.errors),
        duration_ms=result.duration_ms,
    )
    return result
