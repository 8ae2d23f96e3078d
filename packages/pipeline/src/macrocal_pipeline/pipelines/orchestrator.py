"""
pipelines/orchestrator.py — Release schedule sync with source fallback.

Orchestrates one sync run:
  1. Order sources by settings.source_priority, keep the enabled ones
     (unregistered sources are added to data_sources on first sight)
  2. Fetch (optionally all sources concurrently) → parse → normalize →
     match indicators → reconcile releases, for the first source that
     produces data; a source that raises NetworkError, or parses zero rows
     while reporting errors, hands over to the next one
  3. Stop row work when settings.run_deadline_s is exceeded and keep what
     was done so far
  4. Append exactly one sync_logs row: success / partial / failed

Only "every source failed" is fatal: the failed SyncLog is written against
the primary source and AllSourcesFailedError is raised.

Usage:
    from macrocal_pipeline.pipelines.orchestrator import run
    result = await run()                                # all enabled sources
    result = await run(sources=["forexfactory"])        # one source
    print(result.to_response())
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from macrocal_shared.config import settings
from macrocal_shared.models import DataSource, SyncLog
from macrocal_shared.time_utils import utc_now
from macrocal_pipeline.errors import AllSourcesFailedError, ConflictError, NetworkError, ValidationError
from macrocal_pipeline.loaders.catalog import CatalogRepository
from macrocal_pipeline.loaders.supabase_loader import SupabaseLoader
from macrocal_pipeline.sources import CALENDAR_SOURCES
from macrocal_pipeline.sources.base import CalendarSource, ParseResult
from macrocal_pipeline.sources.fetcher import Fetcher
from macrocal_pipeline.transforms.matching import IndicatorMatcher
from macrocal_pipeline.transforms.normalize import NormalizedRelease, normalize_record
from macrocal_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="sync")

SAMPLE_SIZE = 5


class ErrorLog:
    """Exact error count plus the first `cap` messages."""

    def __init__(self, cap: int) -> None:
        self.cap = cap
        self.count = 0
        self.messages: list[str] = []

    def add(self, message: str) -> None:
        self.count += 1
        if len(self.messages) < self.cap:
            self.messages.append(message)


@dataclass
class SyncRunResult:
    """Outcome of one orchestrator run."""

    success: bool
    source: str | None
    fallback: bool = False
    status: str = "success"
    releases_found: int = 0
    releases_inserted: int = 0
    releases_skipped: int = 0
    releases_updated: int = 0
    errors_count: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    sample: list[dict[str, Any]] = field(default_factory=list)
    deadline_exceeded: bool = False
    attempted: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    dry_run: bool = False

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "source": self.source,
            "fallback": self.fallback,
            "status": self.status,
            "releases_found": self.releases_found,
            "releases_inserted": self.releases_inserted,
            "releases_skipped": self.releases_skipped,
            "errors_count": self.errors_count,
            "duration_ms": self.duration_ms,
            "deadline_exceeded": self.deadline_exceeded,
        }
        if self.sample:
            body["sample"] = self.sample
        return body

    def to_metadata(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "fallback": self.fallback,
            "attempted": self.attempted,
            "failures": self.failures,
            "duration_ms": self.duration_ms,
            "releases_found": self.releases_found,
            "releases_inserted": self.releases_inserted,
            "releases_skipped": self.releases_skipped,
            "releases_updated": self.releases_updated,
            "errors": self.errors,
            "deadline_exceeded": self.deadline_exceeded,
        }


class SyncOrchestrator:
    """
    Runs calendar sources in priority order until one produces data.

    Collaborators are injectable so tests can supply a fake Supabase client
    and sources backed by respx.
    """

    def __init__(
        self,
        *,
        sources: list[CalendarSource] | None = None,
        client: Any = None,
        loader: SupabaseLoader | None = None,
        catalog: CatalogRepository | None = None,
        deadline_s: float | None = None,
        concurrent_fetch: bool | None = None,
        update_schedule: bool | None = None,
        error_sample_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sources = sources if sources is not None else build_calendar_sources()
        self._loader = loader or SupabaseLoader(client=client)
        self._catalog = catalog or CatalogRepository(client=client)
        self._deadline_s = settings.run_deadline_s if deadline_s is None else deadline_s
        self._concurrent = settings.concurrent_fetch if concurrent_fetch is None else concurrent_fetch
        self._update_schedule = (
            settings.sync_update_schedule if update_schedule is None else update_schedule
        )
        self._error_cap = error_sample_size or settings.sync_error_sample_size
        self._clock = clock
        self._deadline_at = 0.0

    # ------------------------------------------------------------------
    # Source selection
    # ------------------------------------------------------------------

    def ordered_sources(self, only: list[str] | None = None) -> list[CalendarSource]:
        """Sources in settings.source_priority order, optionally restricted to *only*."""
        by_name = {source.name: source for source in self._sources}
        priority = [name for name in settings.source_priority_list if name in by_name]
        # Sources missing from the priority setting run last, in given order
        priority += [name for name in by_name if name not in priority]

        if only is not None:
            wanted = {name.lower() for name in only}
            unknown = wanted - set(by_name)
            if unknown:
                raise ValueError(f"Unknown source(s): {', '.join(sorted(unknown))}")
            priority = [name for name in priority if name in wanted]
        return [by_name[name] for name in priority]

    async def _enabled_sources(
        self,
        ordered: list[CalendarSource],
        *,
        dry_run: bool,
    ) -> list[tuple[CalendarSource, DataSource]]:
        registered = {ds.name: ds for ds in await self._loader.list_data_sources()}
        enabled: list[tuple[CalendarSource, DataSource]] = []
        for source in ordered:
            row = registered.get(source.name)
            if row is None:
                if dry_run:
                    row = DataSource(name=source.name, kind=source.kind, base_url=source.url)
                else:
                    row = await self._loader.ensure_data_source(
                        source.name, kind=source.kind, base_url=source.url
                    )
            if not row.enabled:
                log.info("source_disabled", source=source.name)
                continue
            enabled.append((source, row))
        return enabled

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _expired(self) -> bool:
        return self._clock() >= self._deadline_at

    async def run(
        self,
        *,
        only: list[str] | None = None,
        dry_run: bool = False,
        today: date | None = None,
    ) -> SyncRunResult:
        """
        Execute one sync run.

        Args:
            only:    Restrict the run to these source names (per-source trigger).
            dry_run: Fetch, parse and normalize but write nothing.
            today:   Initial parser date (tests).

        Returns:
            SyncRunResult for the producing source.

        Raises:
            AllSourcesFailedError: every source failed (after the failed
                                   SyncLog has been written).
            ValueError:            *only* names an unknown source.
        """
        t0 = self._clock()
        self._deadline_at = t0 + self._deadline_s
        started_at = utc_now()

        ordered = self.ordered_sources(only)
        enabled = await self._enabled_sources(ordered, dry_run=dry_run)
        run_log = log.bind(dry_run=dry_run, sources=[s.name for s, _ in enabled])
        run_log.info("sync_start")

        if not enabled:
            run_log.error("no_enabled_sources")
            raise AllSourcesFailedError({})

        prefetched: dict[str, str | BaseException] = {}
        if self._concurrent and len(enabled) > 1:
            payloads = await asyncio.gather(
                *(source.fetch() for source, _ in enabled),
                return_exceptions=True,
            )
            prefetched = {source.name: payload for (source, _), payload in zip(enabled, payloads)}
            run_log.info("prefetch_complete", sources=len(prefetched))

        primary_name = enabled[0][0].name
        errors = ErrorLog(self._error_cap)
        result = SyncRunResult(success=False, source=None, dry_run=dry_run)

        producer: DataSource | None = None
        try:
            for source, data_source in enabled:
                result.attempted.append(source.name)
                try:
                    parsed = await self._fetch_and_parse(source, prefetched, today=today)
                except NetworkError as exc:
                    result.failures[source.name] = str(exc)
                    run_log.warning("source_failed", source=source.name, error=str(exc))
                    continue

                if parsed.failed:
                    message = f"no usable rows ({len(parsed.errors)} row errors)"
                    result.failures[source.name] = message
                    run_log.warning("source_failed", source=source.name, error=message)
                    continue

                result.source = source.name
                result.fallback = source.name != primary_name
                producer = data_source
                await self._process(source, parsed, result, errors, dry_run=dry_run)
                break
        except Exception as exc:
            result.status = "failed"
            result.duration_ms = int((self._clock() - t0) * 1000)
            result.errors = [*errors.messages, str(exc)][: self._error_cap]
            result.errors_count = errors.count + 1
            await self._write_sync_log(producer or enabled[0][1], result, started_at, dry_run=dry_run)
            run_log.error("sync_failed", error=str(exc), exc_info=True)
            raise

        result.duration_ms = int((self._clock() - t0) * 1000)
        result.errors_count = errors.count
        result.errors = errors.messages

        if producer is None:
            result.status = "failed"
            result.errors = [f"{name}: {msg}" for name, msg in result.failures.items()][: self._error_cap]
            result.errors_count = len(result.failures)
            await self._write_sync_log(enabled[0][1], result, started_at, dry_run=dry_run)
            run_log.error("all_sources_failed", failures=result.failures)
            raise AllSourcesFailedError(result.failures)

        result.success = True
        result.status = "partial" if (errors.count or result.deadline_exceeded) else "success"
        await self._write_sync_log(producer, result, started_at, dry_run=dry_run)

        run_log.info(
            "sync_complete",
            source=result.source,
            fallback=result.fallback,
            status=result.status,
            releases_found=result.releases_found,
            releases_inserted=result.releases_inserted,
            releases_skipped=result.releases_skipped,
            errors_count=result.errors_count,
            deadline_exceeded=result.deadline_exceeded,
            duration_ms=result.duration_ms,
        )
        return result

    async def _fetch_and_parse(
        self,
        source: CalendarSource,
        prefetched: dict[str, str | BaseException],
        *,
        today: date | None,
    ) -> ParseResult:
        if source.name in prefetched:
            payload = prefetched[source.name]
            if isinstance(payload, NetworkError):
                raise payload
            if isinstance(payload, BaseException):
                raise NetworkError(source.url, f"prefetch failed: {payload}") from payload
            return source.parse(payload, today=today)
        return await source.run(today=today)

    async def _process(
        self,
        source: CalendarSource,
        parsed: ParseResult,
        result: SyncRunResult,
        errors: ErrorLog,
        *,
        dry_run: bool,
    ) -> None:
        """Normalize → match → reconcile for the producing source."""
        proc_log = log.bind(source=source.name)
        for error in parsed.errors:
            errors.add(f"{source.name}: {error}")

        result.releases_found = len(parsed.records)
        normalized: list[NormalizedRelease] = []
        for raw in parsed.records:
            if self._expired():
                result.deadline_exceeded = True
                break
            try:
                normalized.append(normalize_record(raw, source_name=source.name, source_url=source.url))
            except ValidationError as exc:
                errors.add(f"{source.name}: {exc}")

        result.sample = [release.to_sample() for release in normalized[:SAMPLE_SIZE]]
        if dry_run or not normalized:
            proc_log.info("process_complete", normalized=len(normalized), dry_run=dry_run)
            return
        if self._expired():
            result.deadline_exceeded = True
            return

        matcher = IndicatorMatcher(self._catalog)
        try:
            await matcher.ensure_indicators(normalized)
        except Exception as exc:
            conflict = ConflictError(f"indicator registration failed: {exc}")
            result.releases_skipped += len(normalized)
            errors.add(f"{source.name}: {conflict}")
            proc_log.error("indicator_registration_failed", error=str(exc), rows=len(normalized))
            return

        rows: list[dict[str, Any]] = []
        for release in normalized:
            try:
                rows.append(release.to_release_row(matcher.resolve(release)))
            except ConflictError as exc:
                result.releases_skipped += 1
                errors.add(f"{source.name}: {exc}")

        if self._expired():
            result.deadline_exceeded = True
            proc_log.warning("deadline_exceeded_before_upsert", pending_rows=len(rows))
            return

        try:
            reconciled = await self._loader.reconcile_releases(
                rows, update_schedule=self._update_schedule
            )
        except Exception as exc:
            conflict = ConflictError(f"release upsert failed: {exc}")
            result.releases_skipped += len(rows)
            errors.add(f"{source.name}: {conflict}")
            proc_log.error("reconcile_failed", error=str(exc), rows=len(rows))
            return
        result.releases_inserted += reconciled.inserted
        result.releases_skipped += reconciled.skipped
        result.releases_updated += reconciled.updated
        for message in reconciled.errors:
            errors.add(f"{source.name}: {message}")

        proc_log.info(
            "process_complete",
            normalized=len(normalized),
            inserted=reconciled.inserted,
            skipped=reconciled.skipped,
        )

    async def _write_sync_log(
        self,
        data_source: DataSource,
        result: SyncRunResult,
        started_at: datetime,
        *,
        dry_run: bool,
    ) -> None:
        if dry_run or data_source.id is None:
            return
        completed_at = utc_now()
        await self._loader.record_sync_log(
            SyncLog(
                data_source_id=data_source.id,
                status=result.status,
                records_processed=result.releases_found,
                errors_count=result.errors_count,
                metadata=result.to_metadata(),
                started_at=started_at,
                completed_at=completed_at,
            )
        )
        if result.status != "failed":
            await self._loader.touch_data_source(data_source.id, completed_at)


def build_calendar_sources(fetcher: Fetcher | None = None) -> list[CalendarSource]:
    """Instantiate every known calendar source with a shared Fetcher."""
    fetcher = fetcher or Fetcher()
    return [cls(fetcher=fetcher) for cls in CALENDAR_SOURCES.values()]


async def run(
    *,
    sources: list[str] | None = None,
    dry_run: bool = False,
    client: Any = None,
) -> SyncRunResult:
    """
    Run the release schedule sync end-to-end.

    Args:
        sources: Restrict to these source names (default: all enabled).
        dry_run: If True, parse and normalize but do not write to Supabase.
        client:  Supabase client override.

    Returns:
        SyncRunResult.
    """
    orchestrator = SyncOrchestrator(client=client)
    return await orchestrator.run(only=sources, dry_run=dry_run)
