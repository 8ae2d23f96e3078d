"""
transforms/normalize.py — Canonicalization of scraped calendar rows.

Every source variant funnels its RawReleaseRecords through this module so
that "Cpi Yoy", "CPI YoY" and "cpi yoy" all land on the same indicator key.

Name canonicalization runs three ordered stages:
  1. acronym casing      "Cpi Yoy"            → "CPI YoY"
  2. period suffix        "CPI YoY"            → "CPI (YoY)"
  3. smart title-casing   "10-year bund auction" → "10-Year Bund Auction"

Usage:
    from macrocal_pipeline.transforms.normalize import (
        normalize_indicator_name, infer_category, map_country_code, normalize_record,
    )

    normalize_indicator_name("cpi yoy")          # "CPI (YoY)"
    infer_category("", "Core CPI YoY")           # "Inflation"
    map_country_code("EA")                       # "EUR"

    release = normalize_record(raw, source_name="tradingeconomics")
    release.indicator_key                         # ("USD", "CPI (YoY)")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from macrocal_shared.constants import (
    ACRONYM_REPLACEMENTS,
    CATEGORY_RULES,
    CURRENCY_BY_REGION,
    DEFAULT_CATEGORY,
    DEFAULT_IMPACT,
    IMPACT_LEVELS,
    KEEP_CASE_TOKENS,
    NULL_VALUE_MARKERS,
    PERIOD_SUFFIXES,
)
from macrocal_shared.models import Indicator, Release
from macrocal_shared.time_utils import to_utc_iso
from macrocal_pipeline.errors import ValidationError

if TYPE_CHECKING:
    from macrocal_pipeline.sources.base import RawReleaseRecord

_ACRONYM_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"(?<![\w&]){re.escape(token)}(?![\w&])", re.IGNORECASE), canonical)
    for token, canonical in ACRONYM_REPLACEMENTS
]
_PERIOD_SUFFIX = re.compile(
    r"\s+(" + "|".join(PERIOD_SUFFIXES) + r")$",
    re.IGNORECASE,
)
_PERIOD_CANONICAL = {suffix.upper(): suffix for suffix in PERIOD_SUFFIXES}
_WORD_CHAR = re.compile(r"[A-Za-z0-9&]")
_SPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Name canonicalization
# ---------------------------------------------------------------------------

def apply_acronyms(name: str) -> str:
    """Stage 1: force canonical casing on whole-word acronyms."""
    for pattern, canonical in _ACRONYM_PATTERNS:
        name = pattern.sub(canonical, name)
    return name


def rewrite_period_suffix(name: str) -> str:
    """Stage 2: "CPI YoY" → "CPI (YoY)". Only a trailing suffix is rewritten."""
    return _PERIOD_SUFFIX.sub(
        lambda m: f" ({_PERIOD_CANONICAL[m.group(1).upper()]})",
        name,
    )


def _case_part(part: str) -> str:
    clean = "".join(_WORD_CHAR.findall(part))
    if not clean:
        return part

    keep = KEEP_CASE_TOKENS.get(clean.upper())
    cased = keep if keep is not None else clean[0].upper() + clean[1:].lower()

    # Re-insert stripped punctuation at its original positions
    chars = iter(cased)
    return "".join(next(chars) if _WORD_CHAR.match(ch) else ch for ch in part)


def smart_title_case(name: str) -> str:
    """
    Stage 3: title-case each word, treating hyphenated parts as words.

    Tokens in KEEP_CASE_TOKENS keep their canonical casing; punctuation such
    as parentheses or dots stays where it was.
    """
    return " ".join(
        "-".join(_case_part(part) for part in word.split("-"))
        for word in name.split(" ")
    )


def normalize_indicator_name(raw_name: str | None) -> str:
    """
    Canonical display/matching name for an indicator.

    Idempotent: normalize_indicator_name(normalize_indicator_name(x)) == normalize_indicator_name(x).
    Returns "" for None/blank input.
    """
    if not raw_name:
        return ""
    name = _SPACE.sub(" ", raw_name).strip()
    name = apply_acronyms(name)
    name = rewrite_period_suffix(name)
    return smart_title_case(name)


# ---------------------------------------------------------------------------
# Category / country / impact / values
# ---------------------------------------------------------------------------

def infer_category(hint: str | None, name: str | None) -> str:
    """First matching CATEGORY_RULES label for "{hint} {name}", else "Other"."""
    haystack = f"{hint or ''} {name or ''}".lower()
    for label, keywords in CATEGORY_RULES:
        if any(keyword in haystack for keyword in keywords):
            return label
    return DEFAULT_CATEGORY


def map_country_code(code: str | None) -> str:
    """Region/ISO code → currency code. Unknown codes pass through upper-cased."""
    if not code:
        return ""
    key = code.strip().upper()
    return CURRENCY_BY_REGION.get(key, key)


def normalize_impact(raw: str | None) -> str:
    if raw is None:
        return DEFAULT_IMPACT
    level = raw.strip().lower()
    return level if level in IMPACT_LEVELS else DEFAULT_IMPACT


def clean_value(raw: str | None) -> str | None:
    """Strip a value cell; placeholder markers ("-", "—", "n/a", "") become None."""
    if raw is None:
        return None
    value = _SPACE.sub(" ", raw).strip()
    if value.lower() in NULL_VALUE_MARKERS:
        return None
    return value


# ---------------------------------------------------------------------------
# Record-level normalization
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NormalizedRelease:
    """A raw calendar row after canonicalization, ready for matching."""

    name: str
    raw_name: str
    country_code: str
    category: str
    impact: str
    release_at: datetime
    period: str | None = None
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None
    source_name: str | None = None
    source_url: str | None = None

    @property
    def normalized_name(self) -> str:
        return self.name

    @property
    def indicator_key(self) -> tuple[str, str]:
        return (self.country_code, self.name)

    def to_indicator_row(self) -> dict[str, Any]:
        return Indicator(
            name=self.name,
            normalized_name=self.name,
            raw_name=self.raw_name,
            country_code=self.country_code,
            category=self.category,
            impact=self.impact,
            source_name=self.source_name or None,
            source_url=self.source_url or None,
        ).to_insert_dict()

    def to_release_row(self, indicator_id: str) -> dict[str, Any]:
        return Release(
            indicator_id=indicator_id,
            release_at=self.release_at,
            period=self.period,
            forecast=self.forecast,
            previous=self.previous,
            actual=self.actual,
        ).to_insert_dict()

    def to_sample(self) -> dict[str, Any]:
        return {
            "indicator_name": self.name,
            "raw_indicator_name": self.raw_name,
            "country_code": self.country_code,
            "release_at": to_utc_iso(self.release_at),
            "period": self.period,
            "forecast": self.forecast,
            "previous": self.previous,
            "actual": self.actual,
            "category": self.category,
            "impact": self.impact,
        }


def normalize_record(
    raw: RawReleaseRecord,
    *,
    source_name: str | None = None,
    source_url: str | None = None,
) -> NormalizedRelease:
    """
    Canonicalize one parsed row.

    Raises:
        ValidationError: name or country is empty after normalization.
    """
    name = normalize_indicator_name(raw.raw_name)
    if not name:
        raise ValidationError("indicator name is empty", row_index=raw.row_index)
    country = map_country_code(raw.country_raw)
    if not country:
        raise ValidationError(f"{name}: country is empty", row_index=raw.row_index)

    return NormalizedRelease(
        name=name,
        raw_name=_SPACE.sub(" ", raw.raw_name or "").strip(),
        country_code=country,
        category=infer_category(raw.category_hint, name),
        impact=normalize_impact(raw.impact_raw),
        release_at=raw.release_at,
        period=clean_value(raw.period),
        actual=clean_value(raw.actual_raw),
        forecast=clean_value(raw.forecast_raw),
        previous=clean_value(raw.previous_raw),
        source_name=source_name,
        source_url=source_url,
    )
