"""
sources/base.py — Abstract base class for calendar source adapters.

Each concrete source must implement:
  select_rows()  — pick the candidate data rows out of a parsed page
  date_marker()  — the day a row starts, if it carries one
  read_row()     — turn one row into a record, an error, or nothing,
                   threading the DateCursor through

The parse() method runs the fold over all rows in source order and collects
per-row outcomes; run() orchestrates fetch → parse with timing/logging.
Pipelines call run() (or fetch() + parse() when prefetching concurrently).

Date handling is a left fold: calendars print a day marker only on the
first row of each day, so every row's date depends on the rows before it.
The cursor is an immutable value passed in and returned from step(), which
applies the date marker before the row is read; no parser keeps date state
between rows or between runs.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any

import structlog
from bs4 import BeautifulSoup, Tag

from macrocal_shared.time_utils import utc_now
from macrocal_pipeline.errors import ParseError
from macrocal_pipeline.sources.fetcher import Fetcher

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DateCursor:
    """Fold accumulator: the day in effect and the last explicit time seen."""

    current_date: date
    last_time: tuple[int, int] | None = None

    def with_date(self, day: date) -> "DateCursor":
        return replace(self, current_date=day)

    def with_time(self, hour: int, minute: int) -> "DateCursor":
        return replace(self, last_time=(hour, minute))


@dataclass(frozen=True)
class RawReleaseRecord:
    """One calendar row as scraped. Only release_at is guaranteed."""

    release_at: datetime
    raw_name: str | None = None
    country_raw: str | None = None
    time_text: str | None = None
    actual_raw: str | None = None
    forecast_raw: str | None = None
    previous_raw: str | None = None
    category_hint: str | None = None
    period: str | None = None
    impact_raw: str | None = None
    row_index: int | None = None


@dataclass
class ParseResult:
    records: list[RawReleaseRecord] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    rows_seen: int = 0

    @property
    def failed(self) -> bool:
        """Zero usable rows while reporting errors is the source-failure signal."""
        return not self.records and bool(self.errors)


RowOutcome = RawReleaseRecord | ParseError | None


class CalendarSource(ABC):
    """Abstract base for all macrocal calendar source adapters."""

    # Override in subclass — matches data_sources.name and settings.source_priority
    name: str = "unknown"
    kind: str = "scraper"

    def __init__(self, url: str, *, fetcher: Fetcher | None = None) -> None:
        self.url = url
        self._fetcher = fetcher or Fetcher()
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def select_rows(self, soup: BeautifulSoup) -> list[Tag]:
        """Return the candidate data rows of the page in document order."""
        ...

    @abstractmethod
    def date_marker(self, cursor: DateCursor, row: Tag, index: int) -> date | ParseError | None:
        """The day this row starts, an error for an unreadable marker, or None."""
        ...

    @abstractmethod
    def read_row(
        self,
        cursor: DateCursor,
        row: Tag,
        index: int,
    ) -> tuple[DateCursor, RowOutcome]:
        """
        Read one row once its date marker has been applied to *cursor*.

        Returns the cursor (advanced when the row sets a time) and the row
        outcome: a RawReleaseRecord, a ParseError for a malformed row, or
        None for a non-data row.
        """
        ...

    # ------------------------------------------------------------------
    # Fold + orchestration
    # ------------------------------------------------------------------

    def step(self, cursor: DateCursor, row: Tag, index: int) -> tuple[DateCursor, RowOutcome]:
        """
        One fold step: apply the row's date marker, then read the row.

        The marker is applied before the row is read, so a row that carries a
        date but fails later still moves every following row to that date.
        """
        marker = self.date_marker(cursor, row, index)
        if isinstance(marker, ParseError):
            return cursor, marker
        if marker is not None:
            cursor = cursor.with_date(marker)
        try:
            return self.read_row(cursor, row, index)
        except (ValueError, TypeError, AttributeError) as exc:
            return cursor, ParseError(f"unreadable row: {exc}", row_index=index)

    async def fetch(self) -> str:
        return await self._fetcher.fetch(self.url)

    def parse(self, payload: str, *, today: date | None = None) -> ParseResult:
        """
        Fold step() over every row of *payload*.

        Args:
            payload: Raw HTML.
            today:   Initial cursor date (defaults to today's UTC date).
        """
        soup = BeautifulSoup(payload, "html.parser")
        rows = self.select_rows(soup)

        cursor = DateCursor(current_date=today or utc_now().date())
        result = ParseResult(rows_seen=len(rows))
        for index, row in enumerate(rows):
            try:
                cursor, outcome = self.step(cursor, row, index)
            except (ValueError, TypeError, AttributeError) as exc:
                outcome = ParseError(f"unreadable row: {exc}", row_index=index)

            if isinstance(outcome, ParseError):
                self._log.debug("row_error", row_index=index, error=str(outcome))
                result.errors.append(outcome)
            elif outcome is not None:
                result.records.append(outcome)

        self._log.info(
            "parse_complete",
            rows_seen=result.rows_seen,
            records=len(result.records),
            errors=len(result.errors),
        )
        return result

    async def run(self, *, today: date | None = None) -> ParseResult:
        """
        Fetch + parse in sequence with timing and structured logging.

        Raises:
            NetworkError: fetch failed after retries (logged first).
        """
        run_log = self._log.bind(url=self.url)
        run_log.info("source_run_start")

        t0 = time.monotonic()
        try:
            payload = await self.fetch()
        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise
        run_log.info(
            "fetch_complete",
            bytes=len(payload),
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

        result = self.parse(payload, today=today)
        run_log.info(
            "source_run_complete",
            total_duration_ms=int((time.monotonic() - t0) * 1000),
            output_rows=len(result.records),
        )
        return result

    def get_metadata(self) -> dict[str, Any]:
        """Source-level metadata for data_sources registration."""
        return {"name": self.name, "type": self.kind, "base_url": self.url}

    # ------------------------------------------------------------------
    # Shared helpers available to all subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _text(node: Tag | None) -> str | None:
        """Stripped text of *node*, or None when absent/blank."""
        if node is None:
            return None
        text = " ".join(node.get_text(" ", strip=True).split())
        return text or None

    @staticmethod
    def _classes(node: Tag | None) -> list[str]:
        if node is None:
            return []
        value = node.get("class") or []
        if isinstance(value, str):
            return value.split()
        return list(value)

    @staticmethod
    def _attr(node: Tag | None, name: str) -> str | None:
        """Stripped attribute value, or None when absent/blank."""
        if node is None:
            return None
        value = node.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        if not value:
            return None
        return value.strip() or None
