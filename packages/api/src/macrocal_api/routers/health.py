"""Health check endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from macrocal_shared.constants import TABLE_DATA_SOURCES

from macrocal_api.dependencies import get_pipeline_client

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


@router.get("/ready")
async def ready(client: Any = Depends(get_pipeline_client)) -> Any:
    """Ready once the store answers a trivial query."""
    try:
        client.table(TABLE_DATA_SOURCES).select("id").limit(1).execute()
    except Exception as exc:
        logger.warning("readiness_check_failed", error=str(exc))
        return JSONResponse(status_code=503, content={"status": "unavailable", "error": str(exc)})
    return {"status": "ready"}
