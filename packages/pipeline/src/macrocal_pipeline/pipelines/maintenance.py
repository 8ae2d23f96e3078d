"""
pipelines/maintenance.py — Merge duplicate indicators and repair catalog fields.

Older scrapes stored names before canonicalization existed, so the catalog
can hold "Cpi Yoy", "CPI YoY" and "CPI (YoY)" for the same country. This
pass:
  1. Groups indicators by (country_code, canonical name)
  2. Picks the winner: oldest created_at, ties broken by smallest id
  3. For each loser: moves its releases to the winner, or deletes them when
     the winner already has a release at the same release_at; then deletes
     the loser
  4. Renames the winner when its name/normalized_name is not canonical
  5. Lower-cases mis-cased impact values ("High" → "high")

A group that fails is logged and left for the next run. Running the pass
twice is safe: the second run finds nothing to do.

Usage:
    from macrocal_pipeline.pipelines.maintenance import run
    report = await run(dry_run=True)
    print(report.groups_merged, report.indicators_deleted)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import polars as pl

from macrocal_shared.constants import IMPACT_LEVELS
from macrocal_shared.time_utils import parse_timestamp
from macrocal_pipeline.errors import MergeError
from macrocal_pipeline.loaders.catalog import CatalogRepository
from macrocal_pipeline.transforms.normalize import normalize_impact, normalize_indicator_name
from macrocal_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="maintenance")


@dataclass(frozen=True)
class MergeGroup:
    key: tuple[str, str]            # (country_code, canonical name)
    winner: dict[str, Any]
    losers: tuple[dict[str, Any], ...] = ()

    @property
    def needs_rename(self) -> bool:
        _, canonical = self.key
        return self.winner.get("name") != canonical or self.winner.get("normalized_name") != canonical


@dataclass
class MergeReport:
    groups_found: int = 0
    groups_merged: int = 0
    groups_failed: int = 0
    indicators_deleted: int = 0
    indicators_renamed: int = 0
    releases_moved: int = 0
    releases_deleted: int = 0
    impacts_normalized: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def changes(self) -> int:
        return (
            self.indicators_deleted
            + self.indicators_renamed
            + self.releases_moved
            + self.releases_deleted
            + self.impacts_normalized
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "success": not self.errors,
            "groups_found": self.groups_found,
            "groups_merged": self.groups_merged,
            "groups_failed": self.groups_failed,
            "indicators_deleted": self.indicators_deleted,
            "indicators_renamed": self.indicators_renamed,
            "releases_moved": self.releases_moved,
            "releases_deleted": self.releases_deleted,
            "impacts_normalized": self.impacts_normalized,
            "errors_count": len(self.errors),
            "errors": self.errors,
            "duration_ms": self.duration_ms,
        }


def plan_merges(indicators: list[dict[str, Any]]) -> list[MergeGroup]:
    """
    Group indicators by (country_code, canonical name) and order each group.

    The canonical name is recomputed from the stored normalized_name (or
    name), so rows stored before a canonicalization rule existed regroup.
    Returns one MergeGroup per key, including single-member groups, so
    winners with stale names are renamed too.
    """
    if not indicators:
        return []

    by_id = {row["id"]: row for row in indicators}
    df = pl.DataFrame(
        {
            "id": [row["id"] for row in indicators],
            "country_code": [row["country_code"] for row in indicators],
            "canonical": [
                normalize_indicator_name(row.get("normalized_name") or row.get("name"))
                for row in indicators
            ],
            "created_at": [parse_timestamp(row.get("created_at")) for row in indicators],
        },
        schema={
            "id": pl.String,
            "country_code": pl.String,
            "canonical": pl.String,
            "created_at": pl.Datetime(time_zone="UTC"),
        },
    )
    grouped = (
        df.sort(["created_at", "id"], nulls_last=True)
        .group_by(["country_code", "canonical"], maintain_order=True)
        .agg(pl.col("id"))
        .sort(["country_code", "canonical"])
    )

    groups: list[MergeGroup] = []
    for country, canonical, ids in grouped.iter_rows():
        if not canonical:
            continue
        winner, *losers = (by_id[i] for i in ids)
        groups.append(MergeGroup(key=(country, canonical), winner=winner, losers=tuple(losers)))
    return groups


def _merge_group(
    catalog: CatalogRepository,
    group: MergeGroup,
    report: MergeReport,
    *,
    dry_run: bool,
) -> None:
    winner_id = group.winner["id"]
    try:
        taken = {parse_timestamp(r["release_at"]) for r in catalog.releases_for(winner_id)}
        for loser in group.losers:
            for release in catalog.releases_for(loser["id"]):
                release_at = parse_timestamp(release["release_at"])
                if release_at in taken:
                    if not dry_run:
                        catalog.delete_release(release["id"])
                    report.releases_deleted += 1
                else:
                    if not dry_run:
                        catalog.reparent_release(release["id"], winner_id)
                    taken.add(release_at)
                    report.releases_moved += 1
            if not dry_run:
                catalog.delete_indicator(loser["id"])
            report.indicators_deleted += 1

        if group.needs_rename:
            _, canonical = group.key
            if not dry_run:
                catalog.update_indicator(winner_id, {"name": canonical, "normalized_name": canonical})
            report.indicators_renamed += 1
    except Exception as exc:
        raise MergeError(group.key, str(exc)) from exc


async def run(*, dry_run: bool = False, client: Any = None) -> MergeReport:
    """
    Run the maintenance pass once.

    Args:
        dry_run: Count what would change without writing.
        client:  Supabase client override (tests).

    Returns:
        MergeReport with per-action counts and the messages of failed groups.
    """
    t0 = time.monotonic()
    catalog = CatalogRepository(client=client)
    run_log = log.bind(dry_run=dry_run)
    run_log.info("maintenance_start")

    indicators = catalog.fetch_indicators()
    report = MergeReport()

    removed: set[str] = set()
    for group in plan_merges(indicators):
        if not group.losers and not group.needs_rename:
            continue
        if group.losers:
            report.groups_found += 1
        try:
            _merge_group(catalog, group, report, dry_run=dry_run)
        except MergeError as exc:
            run_log.error("merge_group_failed", group=group.key, error=str(exc))
            report.groups_failed += 1
            report.errors.append(str(exc))
            continue
        removed.update(loser["id"] for loser in group.losers)
        if group.losers:
            report.groups_merged += 1
            run_log.info(
                "merge_group_complete",
                group=group.key,
                winner=group.winner["id"],
                losers=len(group.losers),
            )

    for row in indicators:
        if row["id"] in removed or row.get("impact") in IMPACT_LEVELS:
            continue
        level = normalize_impact(row.get("impact"))
        if not dry_run:
            catalog.update_indicator(row["id"], {"impact": level})
        report.impacts_normalized += 1

    report.duration_ms = int((time.monotonic() - t0) * 1000)
    run_log.info(
        "maintenance_complete",
        groups_merged=report.groups_merged,
        groups_failed=report.groups_failed,
        indicators_deleted=report.indicators_deleted,
        indicators_renamed=report.indicators_renamed,
        releases_moved=report.releases_moved,
        releases_deleted=report.releases_deleted,
        impacts_normalized=report.impacts_normalized,
        duration_ms=report.duration_ms,
    )
    return report
