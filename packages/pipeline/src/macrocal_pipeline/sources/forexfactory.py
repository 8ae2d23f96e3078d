"""
sources/forexfactory.py — ForexFactory economic calendar (secondary source).

Page: https://www.forexfactory.com/calendar?week=this

Row anatomy (<tr class="calendar__row">):
  td.calendar__date       "Mon Jan 15" on the first row of each day only
  td.calendar__time       "8:30am"; blank = same time as the row above;
                          "All Day" / "Tentative" / "Day 1" placeholders
  td.calendar__currency   "USD"
  td.calendar__impact     <span class="icon icon--ff-impact-red">
  span.calendar__event-title
  td.calendar__actual / calendar__forecast / calendar__previous

Some layouts carry the exact instant as epoch seconds in data-timestamp on
the row; when present it wins over the date/time cells.

Times are rendered in the viewer's zone, configured by
settings.forexfactory_timezone, and converted to UTC here.
"""

from __future__ import annotations

from datetime import date

from bs4 import BeautifulSoup, Tag

from macrocal_shared.config import settings
from macrocal_shared.constants import SOURCE_FOREXFACTORY
from macrocal_shared.time_utils import combine_utc, from_epoch, parse_clock_12h, parse_day_header
from macrocal_pipeline.errors import ParseError, ValidationError
from macrocal_pipeline.sources.base import CalendarSource, DateCursor, RawReleaseRecord, RowOutcome
from macrocal_pipeline.sources.fetcher import Fetcher

_IMPACT_PREFIX = "icon--ff-impact-"
_IMPACT_BY_COLOUR = {
    "red": "high",
    "ora": "medium",
    "yel": "low",
    "gra": "low",
}


class ForexFactorySource(CalendarSource):
    """Scraper for the ForexFactory weekly calendar table."""

    name = SOURCE_FOREXFACTORY

    def __init__(
        self,
        url: str | None = None,
        *,
        timezone: str | None = None,
        fetcher: Fetcher | None = None,
    ) -> None:
        super().__init__(url or settings.forexfactory_url, fetcher=fetcher)
        self.timezone = timezone or settings.forexfactory_timezone

    def select_rows(self, soup: BeautifulSoup) -> list[Tag]:
        return soup.select("tr.calendar__row")

    def date_marker(self, cursor: DateCursor, row: Tag, index: int) -> date | ParseError | None:
        date_text = self._text(row.select_one("td.calendar__date"))
        if not date_text:
            return None
        day = parse_day_header(date_text, ref=cursor.current_date)
        if day is None:
            return ParseError(f"unparseable date {date_text!r}", row_index=index)
        return day

    def read_row(self, cursor: DateCursor, row: Tag, index: int) -> tuple[DateCursor, RowOutcome]:
        raw_name = self._text(row.select_one("span.calendar__event-title"))
        currency = self._text(row.select_one("td.calendar__currency"))
        if not raw_name and not currency:
            # day breaker / spacer row
            return cursor, None
        if not raw_name:
            return cursor, ValidationError("missing name", row_index=index)
        if not currency:
            return cursor, ValidationError(f"{raw_name}: missing country", row_index=index)

        time_text = self._text(row.select_one("td.calendar__time"))
        release_at = from_epoch(self._attr(row, "data-timestamp"))
        if release_at is None:
            clock = self._resolve_clock(cursor, time_text)
            if isinstance(clock, str):
                return cursor, ParseError(f"{raw_name}: {clock}", row_index=index)
            hour, minute = clock
            cursor = cursor.with_time(hour, minute)
            release_at = combine_utc(cursor.current_date, hour, minute, tz=self.timezone)

        record = RawReleaseRecord(
            release_at=release_at,
            raw_name=raw_name,
            country_raw=currency,
            time_text=time_text,
            actual_raw=self._text(row.select_one("td.calendar__actual")),
            forecast_raw=self._text(row.select_one("td.calendar__forecast")),
            previous_raw=self._text(row.select_one("td.calendar__previous")),
            impact_raw=self._impact(row),
            row_index=index,
        )
        return cursor, record

    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_clock(cursor: DateCursor, time_text: str | None) -> tuple[int, int] | str:
        """(hour, minute) for the row, or an error message."""
        if not time_text:
            if cursor.last_time is None:
                return "no time and no earlier row to inherit from"
            return cursor.last_time

        lowered = time_text.lower()
        if lowered == "all day":
            return (0, 0)
        if lowered == "tentative":
            return "tentative time"

        clock = parse_clock_12h(time_text)
        if clock is None:
            return f"unparseable time {time_text!r}"
        return clock

    def _impact(self, row: Tag) -> str | None:
        cell = row.select_one("td.calendar__impact")
        if cell is None:
            return None
        for node in [cell, *cell.find_all(True)]:
            for cls in self._classes(node):
                if cls.startswith(_IMPACT_PREFIX):
                    return _IMPACT_BY_COLOUR.get(cls[len(_IMPACT_PREFIX):])
        return None
