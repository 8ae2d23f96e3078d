"""Shared test fixtures for macrocal-api."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import respx
from fastapi.testclient import TestClient

from macrocal_pipeline.sources.fetcher import Fetcher
from macrocal_pipeline.sources.forexfactory import ForexFactorySource
from macrocal_pipeline.sources.statistical import StatisticalSource
from macrocal_pipeline.sources.tradingeconomics import TradingEconomicsSource

PAGE_FIXTURES = Path(__file__).resolve().parents[2] / "pipeline" / "tests" / "fixtures"

TE_URL = "https://te.test/calendar"
FF_URL = "https://ff.test/calendar"


class StubStatisticalSource(StatisticalSource):
    name = "stub"
    series_map = {("USD", "Unemployment Rate"): "UNRATE"}

    def __init__(self, values: dict[str, Any]) -> None:
        super().__init__(base_url="https://stats.test")
        self.values = values

    async def _fetch_latest(self, series_id: str) -> dict[str, Any]:
        return {"value": self.values.get(series_id)}

    def _extract_latest(self, payload: dict[str, Any]) -> str | None:
        return payload["value"]


@pytest.fixture
def te_html() -> str:
    return (PAGE_FIXTURES / "tradingeconomics_sample.html").read_text()


@pytest.fixture
def ff_html() -> str:
    return (PAGE_FIXTURES / "forexfactory_sample.html").read_text()


@pytest.fixture
def mock_http():
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def stub_stats() -> StubStatisticalSource:
    return StubStatisticalSource({"UNRATE": "4.1"})


@pytest.fixture
def app(fake_supabase, stub_stats):
    """FastAPI app wired to the in-memory store and test calendar URLs."""
    from macrocal_api.app import create_app
    from macrocal_api.dependencies import (
        get_calendar_sources,
        get_pipeline_client,
        get_statistical_sources,
    )

    fetcher = Fetcher(timeout=5.0, max_attempts=2, base_delay=0, max_delay=0)
    application = create_app()
    application.dependency_overrides[get_pipeline_client] = lambda: fake_supabase
    application.dependency_overrides[get_calendar_sources] = lambda: [
        TradingEconomicsSource(TE_URL, fetcher=fetcher),
        ForexFactorySource(FF_URL, timezone="UTC", fetcher=fetcher),
    ]
    application.dependency_overrides[get_statistical_sources] = lambda: [stub_stats]
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
