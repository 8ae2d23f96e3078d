"""
sources/statistical.py — Base class for official statistical API clients.

The Revision Tracker asks each client two questions:
  series_for(country_code, normalized_name) → series id, or None if unmapped
  latest_value(series_id)                   → latest observation, or None

Any failure (network, non-2xx, malformed JSON, missing-value marker) means
"value unavailable": it is logged and returned as None, never raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from macrocal_shared.constants import NULL_VALUE_MARKERS

log = structlog.get_logger(__name__)

# FRED publishes "." for a missing observation
MISSING_VALUE_MARKERS = NULL_VALUE_MARKERS | {"."}


class StatisticalSource(ABC):
    """Abstract base for series-observation APIs (FRED, BLS)."""

    name: str = "unknown"
    # (country_code, normalized indicator name) → series id
    series_map: dict[tuple[str, str], str] = {}

    def __init__(self, *, base_url: str, api_key: str = "", timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._log = log.bind(client=self.name)

    @property
    def enabled(self) -> bool:
        return True

    def series_for(self, country_code: str, normalized_name: str) -> str | None:
        return self.series_map.get((country_code, normalized_name))

    async def latest_value(self, series_id: str) -> str | None:
        """Latest published observation for *series_id*, or None when unavailable."""
        try:
            payload = await self._fetch_latest(series_id)
            value = self._extract_latest(payload)
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            self._log.warning("value_unavailable", series_id=series_id, error=str(exc))
            return None

        if value is None or str(value).strip().lower() in MISSING_VALUE_MARKERS:
            self._log.info("value_missing", series_id=series_id)
            return None
        return str(value).strip()

    @abstractmethod
    async def _fetch_latest(self, series_id: str) -> dict[str, Any]:
        """Request the most recent observation(s) and return the decoded JSON."""
        ...

    @abstractmethod
    def _extract_latest(self, payload: dict[str, Any]) -> str | None:
        ...
