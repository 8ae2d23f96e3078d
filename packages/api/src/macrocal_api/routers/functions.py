"""
Pipeline trigger endpoints.

Called by the external scheduler (cron → HTTP). Each endpoint runs one
pipeline to completion and reports its counts:

    POST /functions/sync-release-schedules        all enabled calendar sources
    POST /functions/scrape/{source}               one calendar source
    POST /functions/import-release-data           revision tracker
    POST /functions/maintenance/dedup-indicators  catalog merge
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from macrocal_pipeline.errors import AllSourcesFailedError
from macrocal_pipeline.pipelines import maintenance, revisions
from macrocal_pipeline.pipelines.orchestrator import SyncOrchestrator
from macrocal_pipeline.sources import CALENDAR_SOURCES
from macrocal_pipeline.sources.base import CalendarSource
from macrocal_pipeline.sources.statistical import StatisticalSource

from macrocal_api.dependencies import (
    get_calendar_sources,
    get_pipeline_client,
    get_statistical_sources,
    require_trigger_token,
)
from macrocal_api.responses import (
    ErrorBody,
    MaintenanceResponse,
    RevisionResponse,
    SyncResponse,
    error_response,
)

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/functions",
    tags=["functions"],
    dependencies=[Depends(require_trigger_token)],
)

_ERRORS = {500: {"model": ErrorBody}, 502: {"model": ErrorBody}}


async def _run_sync(
    sources: list[CalendarSource],
    client: Any,
    *,
    only: list[str] | None,
    dry_run: bool,
) -> JSONResponse | dict[str, Any]:
    orchestrator = SyncOrchestrator(sources=sources, client=client)
    try:
        result = await orchestrator.run(only=only, dry_run=dry_run)
    except AllSourcesFailedError as exc:
        logger.error("trigger_failed", endpoint="sync", error=str(exc))
        return JSONResponse(
            status_code=502,
            content=error_response(str(exc), details={"failures": exc.failures}),
        )
    except Exception as exc:
        logger.error("trigger_failed", endpoint="sync", error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=error_response(str(exc)))
    return result.to_response()


# ---------------------------------------------------------------------------
# POST /functions/sync-release-schedules
# ---------------------------------------------------------------------------


@router.post(
    "/sync-release-schedules",
    response_model=SyncResponse,
    response_model_exclude_none=True,
    responses=_ERRORS,
    summary="Sync release schedules with source fallback",
)
async def sync_release_schedules(
    dry_run: bool = Query(False, description="Parse and normalize without writing"),
    sources: list[CalendarSource] = Depends(get_calendar_sources),
    client: Any = Depends(get_pipeline_client),
) -> JSONResponse | dict[str, Any]:
    """
    Run every enabled calendar source in priority order until one produces
    data. Responds 502 when every source failed.
    """
    return await _run_sync(sources, client, only=None, dry_run=dry_run)


# ---------------------------------------------------------------------------
# POST /functions/scrape/{source}
# ---------------------------------------------------------------------------


@router.post(
    "/scrape/{source}",
    response_model=SyncResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorBody}, **_ERRORS},
    summary="Run a single calendar source",
)
async def scrape_source(
    source: str,
    dry_run: bool = Query(False),
    sources: list[CalendarSource] = Depends(get_calendar_sources),
    client: Any = Depends(get_pipeline_client),
) -> JSONResponse | dict[str, Any]:
    name = source.lower()
    if name not in CALENDAR_SOURCES:
        return JSONResponse(
            status_code=404,
            content=error_response(
                f"Unknown source '{source}'",
                details={"available": sorted(CALENDAR_SOURCES)},
            ),
        )
    return await _run_sync(sources, client, only=[name], dry_run=dry_run)


# ---------------------------------------------------------------------------
# POST /functions/import-release-data
# ---------------------------------------------------------------------------


@router.post(
    "/import-release-data",
    response_model=RevisionResponse,
    responses=_ERRORS,
    summary="Fill observed values and record revisions",
)
async def import_release_data(
    limit: int | None = Query(None, ge=1, le=500),
    dry_run: bool = Query(False),
    statistical_sources: list[StatisticalSource] | None = Depends(get_statistical_sources),
    client: Any = Depends(get_pipeline_client),
) -> JSONResponse | dict[str, Any]:
    try:
        result = await revisions.run(
            limit=limit,
            dry_run=dry_run,
            client=client,
            statistical_sources=statistical_sources,
        )
    except Exception as exc:
        logger.error("trigger_failed", endpoint="revisions", error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=error_response(str(exc)))
    return result.to_response()


# ---------------------------------------------------------------------------
# POST /functions/maintenance/dedup-indicators
# ---------------------------------------------------------------------------


@router.post(
    "/maintenance/dedup-indicators",
    response_model=MaintenanceResponse,
    responses=_ERRORS,
    summary="Merge duplicate indicators",
)
async def dedup_indicators(
    dry_run: bool = Query(False),
    client: Any = Depends(get_pipeline_client),
) -> JSONResponse | dict[str, Any]:
    try:
        report = await maintenance.run(dry_run=dry_run, client=client)
    except Exception as exc:
        logger.error("trigger_failed", endpoint="maintenance", error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=error_response(str(exc)))
    return report.to_response()
