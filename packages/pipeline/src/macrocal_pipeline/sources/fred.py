"""
sources/fred.py — FRED (St. Louis Fed) observations client.

Endpoint:
  GET /series/observations?series_id=UNRATE&api_key=…&file_type=json
                           &sort_order=desc&limit=1

Response shape:
  {
    "observations": [
      { "date": "2026-01-01", "value": "4.1" }
    ]
  }

"." marks a missing observation.

Usage:
    fred = FredSource()
    series = fred.series_for("USD", "Unemployment Rate")   # "UNRATE"
    value = await fred.latest_value(series)                # "4.1" | None
"""

from __future__ import annotations

from typing import Any

import httpx

from macrocal_shared.config import settings
from macrocal_pipeline.sources.statistical import StatisticalSource
from macrocal_pipeline.utils.retry import with_retry

SERIES_MAP: dict[tuple[str, str], str] = {
    ("USD", "CPI"): "CPIAUCSL",
    ("USD", "Core CPI"): "CPILFESL",
    ("USD", "Unemployment Rate"): "UNRATE",
    ("USD", "GDP"): "GDP",
    ("USD", "Nonfarm Payrolls"): "PAYEMS",
    ("USD", "Non Farm Payrolls"): "PAYEMS",
    ("USD", "PCE Price Index"): "PCEPI",
    ("USD", "Core PCE Price Index"): "PCEPILFE",
    ("USD", "Initial Jobless Claims"): "ICSA",
    ("USD", "Retail Sales"): "RSAFS",
}


class FredSource(StatisticalSource):
    """Latest observations from the FRED API. Disabled without an API key."""

    name = "fred"
    series_map = SERIES_MAP

    def __init__(self, *, api_key: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(
            base_url=settings.fred_base_url,
            api_key=api_key if api_key is not None else settings.fred_api_key,
            timeout=timeout,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _fetch_latest(self, series_id: str) -> dict[str, Any]:
        url = f"{self._base_url}/series/observations"
        params = {
            "series_id": series_id,
            "api_key": self._api_key,
            "file_type": "json",
            "sort_order": "desc",
            "limit": "1",
        }
        self._log.info("fred_fetch", series_id=series_id)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    def _extract_latest(self, payload: dict[str, Any]) -> str | None:
        observations = payload.get("observations") or []
        if not observations:
            return None
        return observations[0].get("value")
