"""
macrocal_pipeline — release-calendar ingestion workers for the macrocal platform.

Architecture:
  sources/     — fetcher, TradingEconomics/ForexFactory parsers, FRED/BLS clients
  transforms/  — name/country/category canonicalization, indicator matching
  loaders/     — idempotent release upserts, sync logs, catalog queries
  pipelines/   — schedule sync orchestrator, revision tracker, maintenance merge
  utils/       — structlog configuration, exponential-backoff retry decorator

Quick start:
    from macrocal_pipeline.pipelines.orchestrator import run as run_sync
    import asyncio
    result = asyncio.run(run_sync(dry_run=True))

CLI:
    macrocal sync --dry-run
    macrocal sync --source forexfactory
    macrocal revisions --limit 20
    macrocal dedup --dry-run
    macrocal status

Shared code from macrocal_shared:
    from macrocal_shared.config import settings
    from macrocal_shared.db import get_supabase_client
    from macrocal_shared.models import Indicator, Release, SyncLog
    from macrocal_shared.constants import CATEGORY_RULES, CURRENCY_BY_REGION
"""

__version__ = "0.1.0"
