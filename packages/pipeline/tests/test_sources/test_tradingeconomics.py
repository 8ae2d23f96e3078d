"""
tests/test_sources/test_tradingeconomics.py — Unit tests for TradingEconomicsSource.

The fixture page has five event rows; the second one has no country.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import httpx
import pytest

from macrocal_pipeline.errors import NetworkError, ValidationError
from macrocal_pipeline.sources import tradingeconomics
from macrocal_pipeline.sources.tradingeconomics import TradingEconomicsSource

TE_URL = "https://te.test/calendar"
# Monday; the fixture page starts on this day
FIXTURE_TODAY = date(2026, 2, 16)


@pytest.fixture
def source(fast_fetcher) -> TradingEconomicsSource:
    return TradingEconomicsSource(TE_URL, fetcher=fast_fetcher)


def _row(cells: str, *, date_class: str = " 2026-02-16", attrs: str = 'data-url="/x"') -> str:
    return (
        f'<table id="calendar"><tr {attrs}>'
        f'<td class="{date_class}">{cells}</td>'
        "</tr></table>"
    )


class TestParseFixture:
    def test_four_records_one_error(self, source, te_html):
        result = source.parse(te_html, today=FIXTURE_TODAY)
        assert result.rows_seen == 5
        assert len(result.records) == 4
        assert len(result.errors) == 1
        assert not result.failed

    def test_missing_country_is_validation_error(self, source, te_html):
        result = source.parse(te_html, today=FIXTURE_TODAY)
        error = result.errors[0]
        assert isinstance(error, ValidationError)
        assert error.row_index == 1
        assert "country" in str(error)

    def test_first_record_fields(self, source, te_html):
        record = source.parse(te_html, today=FIXTURE_TODAY).records[0]
        assert record.raw_name == "Cpi Yoy"
        assert record.country_raw == "US"
        assert record.release_at == datetime(2026, 2, 16, 13, 30, tzinfo=timezone.utc)
        assert record.actual_raw == "3.2%"
        assert record.forecast_raw == "3.1%"
        assert record.previous_raw == "3.0%"
        assert record.period == "JAN"
        assert record.impact_raw == "high"
        assert record.category_hint == "inflation rate"

    def test_date_markers_advance_the_day(self, source, te_html):
        records = source.parse(te_html, today=FIXTURE_TODAY).records
        assert [r.release_at.date() for r in records] == [
            date(2026, 2, 16),
            date(2026, 2, 17),
            date(2026, 2, 17),
            date(2026, 2, 18),
        ]
        assert records[-1].release_at.hour == 23

    def test_impact_from_time_span_class(self, source, te_html):
        records = source.parse(te_html, today=FIXTURE_TODAY).records
        assert [r.impact_raw for r in records] == ["high", "medium", "low", "medium"]

    def test_forecast_falls_back_to_forecast_cell(self, source, te_html):
        records = source.parse(te_html, today=FIXTURE_TODAY).records
        assert records[2].forecast_raw == "0.2%"

    def test_blank_values_are_none(self, source, te_html):
        records = source.parse(te_html, today=FIXTURE_TODAY).records
        assert records[1].actual_raw is None
        assert records[2].actual_raw is None


class TestRowHandling:
    def test_name_falls_back_to_data_event(self, source):
        html = _row(
            '<span class="calendar-date-2">9:00 AM</span></td><td class="calendar-iso">DE',
            attrs='data-url="/x" data-event="ifo business climate"',
        )
        result = source.parse(html, today=FIXTURE_TODAY)
        assert result.records[0].raw_name == "ifo business climate"

    def test_unparseable_time_is_row_error(self, source):
        html = _row(
            '<span class="calendar-date-2">Tentative</span></td>'
            '<td class="calendar-iso">US</td><td><a class="calendar-event">Fed Speech</a>'
        )
        result = source.parse(html, today=FIXTURE_TODAY)
        assert result.records == []
        assert "unparseable time" in str(result.errors[0])
        assert result.failed

    def test_marker_on_invalid_row_still_applies(self, source):
        html = (
            '<table id="calendar">'
            '<tr data-url="/a"><td class=" 2026-03-02"><span>8:30 AM</span></td>'
            '<td class="calendar-iso"></td><td><a class="calendar-event">Broken</a></td></tr>'
            '<tr data-url="/b"><td><span>9:00 AM</span></td>'
            '<td class="calendar-iso">US</td><td><a class="calendar-event">ISM Services PMI</a></td></tr>'
            "</table>"
        )
        result = source.parse(html, today=FIXTURE_TODAY)
        assert len(result.errors) == 1
        assert result.records[0].release_at.date() == date(2026, 3, 2)

    def test_marker_survives_row_that_raises(self, source, monkeypatch):
        failures = iter([ValueError("bad clock")])
        real_combine = tradingeconomics.combine_utc

        def combine_once_failing(day, hour, minute, **kwargs):
            exc = next(failures, None)
            if exc is not None:
                raise exc
            return real_combine(day, hour, minute, **kwargs)

        monkeypatch.setattr(tradingeconomics, "combine_utc", combine_once_failing)
        html = (
            '<table id="calendar">'
            '<tr data-url="/a"><td class=" 2026-03-02"><span>8:30 AM</span></td>'
            '<td class="calendar-iso">US</td><td><a class="calendar-event">ISM Manufacturing PMI</a></td></tr>'
            '<tr data-url="/b"><td><span>9:00 AM</span></td>'
            '<td class="calendar-iso">US</td><td><a class="calendar-event">ISM Services PMI</a></td></tr>'
            "</table>"
        )

        result = source.parse(html, today=FIXTURE_TODAY)

        assert len(result.errors) == 1
        assert "unreadable row" in str(result.errors[0])
        assert result.records[0].release_at.date() == date(2026, 3, 2)

    def test_rows_without_data_url_are_ignored(self, source):
        html = '<table id="calendar"><tr><th>header</th></tr></table>'
        result = source.parse(html, today=FIXTURE_TODAY)
        assert result.rows_seen == 0
        assert not result.failed

    def test_empty_page(self, source):
        result = source.parse("", today=FIXTURE_TODAY)
        assert result.records == []
        assert result.errors == []


class TestRun:
    @pytest.mark.asyncio
    async def test_run_fetches_and_parses(self, source, mock_http, te_html):
        mock_http.get(TE_URL).mock(return_value=httpx.Response(200, text=te_html))
        result = await source.run(today=FIXTURE_TODAY)
        assert len(result.records) == 4

    @pytest.mark.asyncio
    async def test_run_propagates_network_error(self, source, mock_http):
        mock_http.get(TE_URL).mock(return_value=httpx.Response(404))
        with pytest.raises(NetworkError):
            await source.run(today=FIXTURE_TODAY)

    def test_metadata(self, source):
        assert source.get_metadata() == {
            "name": "tradingeconomics",
            "type": "scraper",
            "base_url": TE_URL,
        }
