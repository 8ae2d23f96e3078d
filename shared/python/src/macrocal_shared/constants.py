"""
constants.py — shared constants used across the pipeline and API.

Country/currency codes, the acronym and title-case tables, the ordered
category rules, table names and typed literals are defined here so they
stay in sync between Python packages.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Region / ISO 3166 alpha-2 code -> 3-letter currency code
# ---------------------------------------------------------------------------
CURRENCY_BY_REGION: Final[dict[str, str]] = {
    "US": "USD",
    "EA": "EUR",
    "EU": "EUR",
    "DE": "EUR",
    "FR": "EUR",
    "IT": "EUR",
    "ES": "EUR",
    "GB": "GBP",
    "UK": "GBP",
    "JP": "JPY",
    "CA": "CAD",
    "AU": "AUD",
    "NZ": "NZD",
    "CH": "CHF",
    "CN": "CNY",
    "IN": "INR",
    "BR": "BRL",
    "MX": "MXN",
    "ZA": "ZAR",
    "RU": "RUB",
    "TR": "TRY",
    "SA": "SAR",
    "SG": "SGD",
    "ID": "IDR",
    "AR": "ARS",
    "KR": "KRW",
}

# ---------------------------------------------------------------------------
# Name canonicalization tables
# ---------------------------------------------------------------------------

# Stage 1: whole-word acronym casing (matched case-insensitively)
ACRONYM_REPLACEMENTS: Final[tuple[tuple[str, str], ...]] = (
    ("ppi", "PPI"),
    ("cpi", "CPI"),
    ("gdp", "GDP"),
    ("pce", "PCE"),
    ("pmi", "PMI"),
    ("ism", "ISM"),
    ("ecb", "ECB"),
    ("boe", "BoE"),
    ("boj", "BoJ"),
    ("boc", "BoC"),
    ("rba", "RBA"),
    ("fed", "Fed"),
    ("fomc", "FOMC"),
    ("s&p", "S&P"),
    ("yoy", "YoY"),
    ("mom", "MoM"),
    ("qoq", "QoQ"),
)

# Stage 2: trailing period tokens rewritten to "(YoY)" etc.
PERIOD_SUFFIXES: Final[tuple[str, ...]] = ("YoY", "MoM", "QoQ")

# Stage 3: tokens that keep a fixed casing through title-casing.
# Keyed by the upper-cased, punctuation-stripped token.
_UPPERCASE_TOKENS: Final[tuple[str, ...]] = (
    "PMI", "CPI", "PPI", "GDP", "PCE", "ADP", "ZEW", "IFO", "ECB", "RBA",
    "RBNZ", "SNB", "FOMC", "USD", "EUR", "GBP", "JPY", "CAD", "AUD", "NZD",
    "CHF", "CNY", "S&P", "HSBC", "HCOB", "JGB", "OAT", "BTF", "KTB", "UK",
    "US", "EU", "MBA", "NY", "API", "EIA", "NFIB", "ISM", "JOLTS", "NFP",
    "TBILL", "HPI", "RICS", "BRC", "GFK", "NAHB", "CB", "OPEC",
)
KEEP_CASE_TOKENS: Final[dict[str, str]] = {
    **{token: token for token in _UPPERCASE_TOKENS},
    "BOE": "BoE",
    "BOJ": "BoJ",
    "BOC": "BoC",
    "FED": "Fed",
    "YOY": "YoY",
    "MOM": "MoM",
    "QOQ": "QoQ",
}

# ---------------------------------------------------------------------------
# Category taxonomy — ORDER MATTERS, first matching rule wins
# ---------------------------------------------------------------------------
CATEGORY_RULES: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("Inflation", (
        "inflation", "cpi", "ppi", "price index", "prices", "deflator",
    )),
    ("GDP & Growth", ("gdp", "growth")),
    ("Employment", (
        "employ", "unemploy", "jobless", "payroll", "job", "labor", "labour",
        "wage", "earnings", "claimant", "personal income",
    )),
    ("Monetary Policy", (
        "rate decision", "interest rate", "fed ", "ecb ", "boe ", "boj ",
        "central bank", "monetary", "fomc", "minutes", "speech",
    )),
    ("Energy", (
        "crude oil", "natural gas", "gasoline", "distillate", "heating oil",
        "refinery", "baker hughes", "rig count", "fuel",
    )),
    ("Retail & Consumption", (
        "retail", "consumer spend", "consumer conf", "consumer credit",
        "personal spend", "car registr", "tourist", "redbook", "sales",
    )),
    ("Trade", ("trade", "export", "import", "balance of", "current account")),
    ("Manufacturing", (
        "manufactur", "industrial", "production", "factory", "capacity",
        "durable goods", "machinery order", "goods orders", "wholesale inv",
    )),
    ("Business Surveys", (
        "pmi", "business conf", "business climate", "sentiment", "survey",
        "ifo", "zew", "tankan", "michigan", "leading index", "economic activity",
    )),
    ("Housing", (
        "housing", "building", "home", "mortgage", "construction", "mba",
        "purchase index",
    )),
    ("Bonds & Auctions", ("auction", "bond", "treasury", "bill", "yield")),
    ("Money & Credit", (
        "money supply", "m2", "m3", "lending", "loan", "credit", "bank",
    )),
    ("Capital Flows", (
        "foreign direct", "capital flow", "tic flow", "securities purchase",
        "stock investment", "foreign exchange res",
    )),
    ("Government", (
        "budget", "debt", "fiscal", "government", "revenue", "spending",
    )),
)
DEFAULT_CATEGORY: Final[str] = "Other"

# Placeholder strings sources use for "no value"
NULL_VALUE_MARKERS: Final[frozenset[str]] = frozenset(
    {"", "-", "--", "—", "–", "n/a", "na", "null", "none"}
)

# ---------------------------------------------------------------------------
# Source names — keys used by settings.source_priority and data_sources.name
# ---------------------------------------------------------------------------
SOURCE_TRADINGECONOMICS: Final[str] = "tradingeconomics"
SOURCE_FOREXFACTORY: Final[str] = "forexfactory"

# ---------------------------------------------------------------------------
# Table names
# ---------------------------------------------------------------------------
TABLE_INDICATORS: Final[str] = "indicators"
TABLE_RELEASES: Final[str] = "releases"
TABLE_DATA_SOURCES: Final[str] = "data_sources"
TABLE_SYNC_LOGS: Final[str] = "sync_logs"

# ---------------------------------------------------------------------------
# Typed literals
# ---------------------------------------------------------------------------
Impact = Literal["low", "medium", "high"]
IMPACT_LEVELS: Final[tuple[str, ...]] = ("low", "medium", "high")
DEFAULT_IMPACT: Final[Impact] = "low"

SourceKind = Literal["scraper", "api"]
SyncStatus = Literal["success", "partial", "failed"]
