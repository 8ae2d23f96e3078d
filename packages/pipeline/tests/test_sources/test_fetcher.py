"""
tests/test_sources/test_fetcher.py — Retry and error classification of Fetcher.
"""

from __future__ import annotations

import httpx
import pytest

from macrocal_pipeline.errors import NetworkError
from macrocal_pipeline.sources.fetcher import Fetcher

URL = "https://calendar.test/page"


class TestFetcher:
    @pytest.mark.asyncio
    async def test_returns_body_text(self, mock_http, fast_fetcher):
        mock_http.get(URL).mock(return_value=httpx.Response(200, text="<html>ok</html>"))
        assert await fast_fetcher.fetch(URL) == "<html>ok</html>"

    @pytest.mark.asyncio
    async def test_sends_user_agent(self, mock_http):
        route = mock_http.get(URL).mock(return_value=httpx.Response(200, text="ok"))
        fetcher = Fetcher(max_attempts=1, base_delay=0, user_agent="macrocal-test/1.0")
        await fetcher.fetch(URL)
        assert route.calls[0].request.headers["User-Agent"] == "macrocal-test/1.0"

    @pytest.mark.asyncio
    async def test_server_error_is_retried_then_succeeds(self, mock_http, fast_fetcher):
        route = mock_http.get(URL).mock(
            side_effect=[
                httpx.Response(503),
                httpx.Response(502),
                httpx.Response(200, text="recovered"),
            ]
        )
        assert await fast_fetcher.fetch(URL) == "recovered"
        assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_server_error_exhausts_attempts(self, mock_http, fast_fetcher):
        route = mock_http.get(URL).mock(return_value=httpx.Response(500))
        with pytest.raises(NetworkError) as excinfo:
            await fast_fetcher.fetch(URL)
        assert route.call_count == 3
        assert excinfo.value.status_code == 500
        assert excinfo.value.transient

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, mock_http, fast_fetcher):
        route = mock_http.get(URL).mock(return_value=httpx.Response(403))
        with pytest.raises(NetworkError) as excinfo:
            await fast_fetcher.fetch(URL)
        assert route.call_count == 1
        assert excinfo.value.status_code == 403
        assert not excinfo.value.transient

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, mock_http, fast_fetcher):
        route = mock_http.get(URL).mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(NetworkError) as excinfo:
            await fast_fetcher.fetch(URL)
        assert route.call_count == 3
        assert excinfo.value.transient
        assert "timeout" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self, mock_http, fast_fetcher):
        mock_http.get(URL).mock(
            side_effect=[httpx.ConnectError("reset"), httpx.Response(200, text="ok")]
        )
        assert await fast_fetcher.fetch(URL) == "ok"
