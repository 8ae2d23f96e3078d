"""
tests/test_transforms/test_matching.py — IndicatorMatcher against the in-memory store.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from macrocal_pipeline.errors import ConflictError
from macrocal_pipeline.loaders.catalog import CatalogRepository
from macrocal_pipeline.sources.base import RawReleaseRecord
from macrocal_pipeline.transforms.matching import IndicatorMatcher
from macrocal_pipeline.transforms.normalize import normalize_record


def _release(name: str, country: str = "US", impact: str = "high"):
    raw = RawReleaseRecord(
        release_at=datetime(2026, 2, 16, 13, 30, tzinfo=timezone.utc),
        raw_name=name,
        country_raw=country,
        impact_raw=impact,
    )
    return normalize_record(raw, source_name="tradingeconomics")


@pytest.fixture
def matcher(fake_supabase) -> IndicatorMatcher:
    return IndicatorMatcher(CatalogRepository(client=fake_supabase))


class TestIndicatorMatcher:
    @pytest.mark.asyncio
    async def test_existing_indicator_is_reused(self, fake_supabase, matcher):
        (existing,) = fake_supabase.seed(
            "indicators",
            {"name": "CPI (YoY)", "normalized_name": "CPI (YoY)", "country_code": "USD"},
        )
        release = _release("cpi yoy")

        created = await matcher.ensure_indicators([release])

        assert created == 0
        assert matcher.resolve(release) == existing["id"]
        assert len(fake_supabase.tables["indicators"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_keys_are_created_once(self, fake_supabase, matcher):
        releases = [_release("Cpi Yoy"), _release("CPI YoY"), _release("cpi yoy", country="EA")]

        created = await matcher.ensure_indicators(releases)

        assert created == 2
        rows = fake_supabase.tables["indicators"]
        assert sorted((r["country_code"], r["normalized_name"]) for r in rows) == [
            ("EUR", "CPI (YoY)"),
            ("USD", "CPI (YoY)"),
        ]
        # first row seen supplies the raw name
        usd = next(r for r in rows if r["country_code"] == "USD")
        assert usd["raw_name"] == "Cpi Yoy"
        assert usd["impact"] == "high"
        assert usd["category"] == "Inflation"
        assert matcher.resolve(releases[0]) == matcher.resolve(releases[1]) == usd["id"]

    @pytest.mark.asyncio
    async def test_second_call_creates_nothing(self, fake_supabase, matcher):
        await matcher.ensure_indicators([_release("retail sales mom", country="GB")])
        assert await matcher.ensure_indicators([_release("Retail Sales MoM", country="GB")]) == 0
        assert len(fake_supabase.tables["indicators"]) == 1

    @pytest.mark.asyncio
    async def test_resolve_unknown_raises_conflict(self, matcher):
        await matcher.load_cache()
        with pytest.raises(ConflictError):
            matcher.resolve(_release("never seen"))

    @pytest.mark.asyncio
    async def test_cache_loads_once(self, fake_supabase, matcher):
        await matcher.load_cache()
        await matcher.load_cache()
        assert fake_supabase.calls.count(("indicators", "select")) == 1
