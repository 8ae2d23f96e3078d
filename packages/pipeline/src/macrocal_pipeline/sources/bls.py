"""
sources/bls.py — U.S. Bureau of Labor Statistics timeseries client.

Endpoint:
  GET /timeseries/data/{series}?registrationkey=…&startyear=2025&endyear=2026

Response shape:
  {
    "status": "REQUEST_SUCCEEDED",
    "Results": {
      "series": [
        { "seriesID": "LNS14000000",
          "data": [ { "year": "2026", "period": "M01", "value": "4.1", "latest": "true" } ] }
      ]
    }
  }

Data points are returned newest first. The registration key is optional;
unregistered callers get a lower daily quota.
"""

from __future__ import annotations

from typing import Any

import httpx

from macrocal_shared.config import settings
from macrocal_shared.time_utils import utc_now
from macrocal_pipeline.sources.statistical import StatisticalSource
from macrocal_pipeline.utils.retry import with_retry

SERIES_MAP: dict[tuple[str, str], str] = {
    ("USD", "Nonfarm Payrolls"): "CES0000000001",
    ("USD", "Non Farm Payrolls"): "CES0000000001",
    ("USD", "Unemployment Rate"): "LNS14000000",
    ("USD", "Average Hourly Earnings"): "CES0500000003",
    ("USD", "CPI"): "CUUR0000SA0",
}


class BlsSource(StatisticalSource):
    """Latest observations from the BLS public API (v2)."""

    name = "bls"
    series_map = SERIES_MAP

    def __init__(self, *, api_key: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(
            base_url=settings.bls_base_url,
            api_key=api_key if api_key is not None else settings.bls_api_key,
            timeout=timeout,
        )

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _fetch_latest(self, series_id: str) -> dict[str, Any]:
        end_year = utc_now().year
        url = f"{self._base_url}/timeseries/data/{series_id}"
        params = {"startyear": str(end_year - 1), "endyear": str(end_year)}
        if self._api_key:
            params["registrationkey"] = self._api_key

        self._log.info("bls_fetch", series_id=series_id)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    def _extract_latest(self, payload: dict[str, Any]) -> str | None:
        if payload.get("status") not in (None, "REQUEST_SUCCEEDED"):
            raise ValueError(f"BLS status {payload.get('status')}: {payload.get('message')}")
        series = payload["Results"]["series"]
        if not series or not series[0].get("data"):
            return None
        return series[0]["data"][0].get("value")
