"""
transforms/matching.py — Resolve normalized rows to indicator ids.

Calendar rows name indicators loosely; after normalization the key
(country_code, normalized_name) is stable, so resolution is an exact
dictionary lookup against the indicators table. Unknown keys are created
in one upsert before any release row is written.

Usage:
    from macrocal_pipeline.transforms.matching import IndicatorMatcher

    matcher = IndicatorMatcher(catalog)
    await matcher.load_cache()
    created = await matcher.ensure_indicators(releases)
    indicator_id = matcher.resolve(releases[0])
"""

from __future__ import annotations

import structlog

from macrocal_pipeline.errors import ConflictError
from macrocal_pipeline.loaders.catalog import CatalogRepository
from macrocal_pipeline.transforms.normalize import NormalizedRelease

log = structlog.get_logger(__name__)


class IndicatorMatcher:
    """
    Maps (country_code, normalized_name) → indicator id.

    Internal cache loaded once from Supabase; refreshed after new
    indicators are created.
    """

    def __init__(self, catalog: CatalogRepository) -> None:
        self._catalog = catalog
        self._cache: dict[tuple[str, str], str] = {}
        self._loaded = False

    async def load_cache(self, *, force_reload: bool = False) -> None:
        if self._loaded and not force_reload:
            return
        log.info("loading_indicator_cache")
        self._cache = {
            (row["country_code"], row["normalized_name"]): row["id"]
            for row in self._catalog.fetch_indicators()
            if row.get("normalized_name")
        }
        self._loaded = True
        log.info("indicator_cache_loaded", count=len(self._cache))

    async def ensure_indicators(self, releases: list[NormalizedRelease]) -> int:
        """
        Create indicators for keys not in the cache.

        The first row seen for a key supplies raw_name/category/impact.

        Returns:
            Number of keys that were missing before the call.
        """
        await self.load_cache()

        missing: dict[tuple[str, str], NormalizedRelease] = {}
        for release in releases:
            key = release.indicator_key
            if key not in self._cache and key not in missing:
                missing[key] = release
        if not missing:
            return 0

        self._catalog.insert_indicators([release.to_indicator_row() for release in missing.values()])
        await self.load_cache(force_reload=True)

        unresolved = [key for key in missing if key not in self._cache]
        log.info(
            "indicators_registered",
            requested=len(missing),
            unresolved=len(unresolved),
        )
        return len(missing)

    def resolve(self, release: NormalizedRelease) -> str:
        """
        Return the indicator id for *release*.

        Raises:
            ConflictError: no indicator exists for the key and none could be created.
        """
        indicator_id = self._cache.get(release.indicator_key)
        if indicator_id is None:
            country, name = release.indicator_key
            raise ConflictError(f"no indicator for {country}:{name}")
        return indicator_id
