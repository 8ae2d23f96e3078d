"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()       — resolves paths to tests/fixtures/
  te_html / ff_html    — calendar page fixtures as text
  fast_fetcher         — Fetcher with no backoff delay
  mock_http            — configured respx router for faking HTTP responses

The in-memory Supabase client (fake_supabase) lives in the repository-level
conftest.py so the API suite can use it too.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import respx

from macrocal_pipeline.sources.fetcher import Fetcher

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def te_html() -> str:
    return (FIXTURES_DIR / "tradingeconomics_sample.html").read_text()


@pytest.fixture
def ff_html() -> str:
    return (FIXTURES_DIR / "forexfactory_sample.html").read_text()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def fast_fetcher() -> Fetcher:
    """Three attempts, no sleeping between them."""
    return Fetcher(timeout=5.0, max_attempts=3, base_delay=0, max_delay=0)


@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, text="..."))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
