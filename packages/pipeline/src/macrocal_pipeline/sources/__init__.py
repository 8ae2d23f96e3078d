"""
macrocal_pipeline.sources — calendar scrapers and statistical API clients.

Calendar sources (HTML → RawReleaseRecord):
  TradingEconomicsSource — tradingeconomics.com/calendar (primary)
  ForexFactorySource     — forexfactory.com/calendar (fallback)

Statistical clients (series id → latest observed value):
  FredSource — St. Louis Fed FRED API
  BlsSource  — Bureau of Labor Statistics public API
"""

from macrocal_pipeline.sources.base import CalendarSource
from macrocal_pipeline.sources.bls import BlsSource
from macrocal_pipeline.sources.forexfactory import ForexFactorySource
from macrocal_pipeline.sources.fred import FredSource
from macrocal_pipeline.sources.tradingeconomics import TradingEconomicsSource

CALENDAR_SOURCES: dict[str, type[CalendarSource]] = {
    TradingEconomicsSource.name: TradingEconomicsSource,
    ForexFactorySource.name: ForexFactorySource,
}

__all__ = [
    "CALENDAR_SOURCES",
    "CalendarSource",
    "TradingEconomicsSource",
    "ForexFactorySource",
    "FredSource",
    "BlsSource",
]
