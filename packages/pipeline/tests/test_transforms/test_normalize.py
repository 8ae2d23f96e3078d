"""
tests/test_transforms/test_normalize.py — Name, category, country and value normalization.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from macrocal_pipeline.errors import ValidationError
from macrocal_pipeline.sources.base import RawReleaseRecord
from macrocal_pipeline.transforms.normalize import (
    apply_acronyms,
    clean_value,
    infer_category,
    map_country_code,
    normalize_impact,
    normalize_indicator_name,
    normalize_record,
    rewrite_period_suffix,
    smart_title_case,
)

RELEASE_AT = datetime(2026, 2, 16, 13, 30, tzinfo=timezone.utc)


class TestNormalizeIndicatorName:
    @pytest.mark.parametrize(
        "raw",
        ["cpi yoy", "Cpi Yoy", "CPI YoY", "CPI (YoY)", "  cpi   YOY "],
    )
    def test_cpi_variants_share_one_name(self, raw):
        assert normalize_indicator_name(raw) == "CPI (YoY)"

    def test_hyphenated_words_are_title_cased(self):
        assert normalize_indicator_name("10-year bund auction") == "10-Year Bund Auction"

    def test_keep_case_tokens(self):
        assert normalize_indicator_name("ism manufacturing pmi") == "ISM Manufacturing PMI"
        assert normalize_indicator_name("s&p global services pmi") == "S&P Global Services PMI"
        assert normalize_indicator_name("fed chair powell speaks") == "Fed Chair Powell Speaks"

    def test_acronyms_match_whole_words_only(self):
        assert normalize_indicator_name("momentum index") == "Momentum Index"

    def test_only_trailing_period_is_rewritten(self):
        assert normalize_indicator_name("retail sales mom") == "Retail Sales (MoM)"
        assert normalize_indicator_name("mom and pop index") == "MoM And Pop Index"

    @pytest.mark.parametrize(
        "raw",
        ["cpi yoy", "10-year bund auction", "gdp growth rate qoq", "BoE Gov Bailey Speaks", "Core CPI m/m"],
    )
    def test_idempotent(self, raw):
        once = normalize_indicator_name(raw)
        assert normalize_indicator_name(once) == once

    def test_blank(self):
        assert normalize_indicator_name(None) == ""
        assert normalize_indicator_name("   ") == ""


class TestStages:
    def test_apply_acronyms(self):
        assert apply_acronyms("ecb boe boj rate decision") == "ECB BoE BoJ rate decision"

    def test_rewrite_period_suffix(self):
        assert rewrite_period_suffix("GDP Growth Rate QoQ") == "GDP Growth Rate (QoQ)"
        assert rewrite_period_suffix("GDP Growth Rate") == "GDP Growth Rate"

    def test_smart_title_case_keeps_punctuation(self):
        assert smart_title_case("core pce (mom)") == "Core PCE (MoM)"


class TestInferCategory:
    @pytest.mark.parametrize(
        "hint,name,expected",
        [
            ("", "Core CPI (YoY)", "Inflation"),
            ("", "GDP Growth Rate (QoQ)", "GDP & Growth"),
            ("", "Nonfarm Payrolls", "Employment"),
            ("interest rate", "ECB Decision", "Monetary Policy"),
            ("", "Crude Oil Inventories", "Energy"),
            ("", "Retail Sales (MoM)", "Retail & Consumption"),
            ("", "ISM Manufacturing PMI", "Manufacturing"),
            ("", "Ifo Business Climate", "Business Surveys"),
            ("", "10-Year Bund Auction", "Bonds & Auctions"),
            ("", "Something Obscure", "Other"),
        ],
    )
    def test_rules(self, hint, name, expected):
        assert infer_category(hint, name) == expected

    def test_first_matching_rule_wins(self):
        # "manufactur" is checked before "pmi"
        assert infer_category(None, "Manufacturing PMI") == "Manufacturing"


class TestScalars:
    @pytest.mark.parametrize(
        "code,expected",
        [("US", "USD"), ("ea", "EUR"), (" gb ", "GBP"), ("JP", "JPY"), ("USD", "USD"), ("XX", "XX"), (None, "")],
    )
    def test_map_country_code(self, code, expected):
        assert map_country_code(code) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("High", "high"), (" medium ", "medium"), ("low", "low"), ("urgent", "low"), (None, "low")],
    )
    def test_normalize_impact(self, raw, expected):
        assert normalize_impact(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [(" 3.2% ", "3.2%"), ("-", None), ("—", None), ("N/A", None), ("", None), (None, None)],
    )
    def test_clean_value(self, raw, expected):
        assert clean_value(raw) == expected


class TestNormalizeRecord:
    def test_full_record(self):
        raw = RawReleaseRecord(
            release_at=RELEASE_AT,
            raw_name="Cpi Yoy",
            country_raw="US",
            actual_raw="3.2%",
            forecast_raw="3.1%",
            previous_raw="-",
            category_hint="inflation rate",
            period="JAN",
            impact_raw="high",
            row_index=0,
        )
        release = normalize_record(raw, source_name="tradingeconomics", source_url="https://te.test")

        assert release.name == "CPI (YoY)"
        assert release.raw_name == "Cpi Yoy"
        assert release.indicator_key == ("USD", "CPI (YoY)")
        assert release.category == "Inflation"
        assert release.impact == "high"
        assert release.previous is None
        assert release.to_release_row("ind-1") == {
            "indicator_id": "ind-1",
            "release_at": "2026-02-16T13:30:00+00:00",
            "period": "JAN",
            "forecast": "3.1%",
            "previous": None,
            "actual": "3.2%",
        }
        assert release.to_indicator_row() == {
            "name": "CPI (YoY)",
            "normalized_name": "CPI (YoY)",
            "raw_name": "Cpi Yoy",
            "country_code": "USD",
            "category": "Inflation",
            "impact": "high",
            "source_name": "tradingeconomics",
            "source_url": "https://te.test",
        }

    def test_missing_name_raises(self):
        raw = RawReleaseRecord(release_at=RELEASE_AT, raw_name="  ", country_raw="US", row_index=3)
        with pytest.raises(ValidationError) as excinfo:
            normalize_record(raw)
        assert excinfo.value.row_index == 3

    def test_missing_country_raises(self):
        raw = RawReleaseRecord(release_at=RELEASE_AT, raw_name="CPI", country_raw=None)
        with pytest.raises(ValidationError):
            normalize_record(raw)
