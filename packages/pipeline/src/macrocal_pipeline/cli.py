"""
cli.py — Click CLI entrypoint for pipeline workers.

Usage:
    macrocal sync
    macrocal sync --source forexfactory --dry-run
    macrocal revisions --limit 20
    macrocal dedup --dry-run
    macrocal status
"""

from __future__ import annotations

import asyncio
import json

import click
import structlog

from macrocal_shared.config import settings
from macrocal_shared.constants import SOURCE_FOREXFACTORY, SOURCE_TRADINGECONOMICS
from macrocal_pipeline.errors import AllSourcesFailedError
from macrocal_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)


def _echo_json(payload: dict) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
def main(log_level: str) -> None:
    """macrocal release-calendar pipeline workers."""
    configure_logging(log_level=log_level)


@main.command()
@click.option(
    "--source",
    "sources",
    multiple=True,
    type=click.Choice([SOURCE_TRADINGECONOMICS, SOURCE_FOREXFACTORY], case_sensitive=False),
    help="Restrict the run to this source (repeatable). Default: all enabled sources.",
)
@click.option("--dry-run", is_flag=True, help="Parse and normalize but do not write to Supabase")
def sync(sources: tuple[str, ...], dry_run: bool) -> None:
    """Sync release schedules from the calendar sources, with fallback."""
    from macrocal_pipeline.pipelines.orchestrator import run

    log.info("pipeline_start", pipeline="sync", sources=list(sources), dry_run=dry_run)
    try:
        result = asyncio.run(run(sources=list(sources) or None, dry_run=dry_run))
    except AllSourcesFailedError as exc:
        click.echo(f"Sync failed: {exc}", err=True)
        raise SystemExit(1) from exc

    _echo_json(result.to_response())
    log.info("pipeline_complete", pipeline="sync", status=result.status)


@main.command()
@click.option("--limit", type=int, default=None, help="Max due releases to check")
@click.option("--dry-run", is_flag=True, help="Compute updates but do not write them")
def revisions(limit: int | None, dry_run: bool) -> None:
    """Fill in observed values and record revisions."""
    from macrocal_pipeline.pipelines.revisions import run

    result = asyncio.run(run(limit=limit, dry_run=dry_run))
    _echo_json(result.to_response())


@main.command()
@click.option("--dry-run", is_flag=True, help="Report what would change without writing")
def dedup(dry_run: bool) -> None:
    """Merge duplicate indicators and normalize catalog fields."""
    from macrocal_pipeline.pipelines.maintenance import run

    report = asyncio.run(run(dry_run=dry_run))
    _echo_json(report.to_response())
    if report.errors:
        raise SystemExit(1)


@main.command()
@click.option("--limit", type=int, default=20, show_default=True)
def status(limit: int) -> None:
    """Show the most recent sync runs."""
    from macrocal_pipeline.loaders.supabase_loader import SupabaseLoader

    loader = SupabaseLoader()
    sources = {ds.id: ds.name for ds in asyncio.run(loader.list_data_sources())}
    logs = asyncio.run(loader.recent_sync_logs(limit=limit))

    click.echo("Sync status:")
    if not logs:
        click.echo("  No sync runs found.")
        return
    for entry in logs:
        status_emoji = {"success": "✓", "failed": "✗", "partial": "⚠"}.get(entry.status, "?")
        click.echo(
            f"  {status_emoji} {sources.get(entry.data_source_id, entry.data_source_id):20s} "
            f"{entry.status:8s} "
            f"{entry.records_processed} rows  "
            f"{entry.errors_count} errors  "
            f"{entry.started_at.isoformat()[:19]}"
        )


if __name__ == "__main__":
    main()
