"""
sources/tradingeconomics.py — TradingEconomics economic calendar.

Page: https://tradingeconomics.com/calendar (server-rendered HTML table)

Row anatomy (one <tr data-url=...> per event):
  <td class=" 2026-02-16">            date marker in the class attribute
    <span class="calendar-date-3">1:30 PM</span>   time; -1/-2/-3 = impact
  <td class="calendar-iso">US</td>    region code (nested table)
  <a class="calendar-event">…</a>     event name (fallback: data-event attr)
  <span class="calendar-reference">JAN</span>      reference period
  #actual / #previous / #consensus / #forecast     value cells

Times are UTC when no timezone cookie is sent.

Usage:
    source = TradingEconomicsSource()
    result = await source.run()
    result.records   # list[RawReleaseRecord]
"""

from __future__ import annotations

from datetime import date

from bs4 import BeautifulSoup, Tag

from macrocal_shared.config import settings
from macrocal_shared.constants import SOURCE_TRADINGECONOMICS
from macrocal_shared.time_utils import combine_utc, find_iso_date, parse_clock_12h
from macrocal_pipeline.errors import ParseError, ValidationError
from macrocal_pipeline.sources.base import CalendarSource, DateCursor, RawReleaseRecord, RowOutcome
from macrocal_pipeline.sources.fetcher import Fetcher

_IMPACT_BY_CLASS = {
    "calendar-date-3": "high",
    "calendar-date-2": "medium",
    "calendar-date-1": "low",
}


class TradingEconomicsSource(CalendarSource):
    """Scraper for the TradingEconomics calendar table."""

    name = SOURCE_TRADINGECONOMICS

    def __init__(self, url: str | None = None, *, fetcher: Fetcher | None = None) -> None:
        super().__init__(url or settings.tradingeconomics_url, fetcher=fetcher)

    def select_rows(self, soup: BeautifulSoup) -> list[Tag]:
        return soup.select("table#calendar tr[data-url]")

    def date_marker(self, cursor: DateCursor, row: Tag, index: int) -> date | None:
        for cell in row.find_all("td"):
            day = find_iso_date(" ".join(self._classes(cell)))
            if day is not None:
                return day
        return None

    def read_row(self, cursor: DateCursor, row: Tag, index: int) -> tuple[DateCursor, RowOutcome]:
        time_span = row.select_one("span.calendar-date-1") or row.select_one("td span")
        time_text = self._text(time_span)
        country = self._text(row.select_one("td.calendar-iso"))
        raw_name = self._text(row.select_one("a.calendar-event")) or self._attr(row, "data-event")

        missing = [
            label
            for label, value in (("name", raw_name), ("country", country), ("time", time_text))
            if not value
        ]
        if missing:
            return cursor, ValidationError(f"missing {', '.join(missing)}", row_index=index)

        clock = parse_clock_12h(time_text)
        if clock is None:
            return cursor, ParseError(f"{raw_name}: unparseable time {time_text!r}", row_index=index)
        hour, minute = clock

        record = RawReleaseRecord(
            release_at=combine_utc(cursor.current_date, hour, minute),
            raw_name=raw_name,
            country_raw=country,
            time_text=time_text,
            actual_raw=self._value(row, "actual"),
            forecast_raw=self._value(row, "consensus") or self._value(row, "forecast"),
            previous_raw=self._value(row, "previous"),
            category_hint=self._attr(row, "data-category"),
            period=self._text(row.select_one("span.calendar-reference")),
            impact_raw=self._impact(time_span),
            row_index=index,
        )
        return cursor.with_time(hour, minute), record

    # ------------------------------------------------------------------

    def _value(self, row: Tag, element_id: str) -> str | None:
        return self._text(row.find(id=element_id))

    def _impact(self, time_span: Tag | None) -> str | None:
        for cls in self._classes(time_span):
            if cls in _IMPACT_BY_CLASS:
                return _IMPACT_BY_CLASS[cls]
        return None

