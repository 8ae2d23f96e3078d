"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from macrocal_shared.config import settings
from macrocal_pipeline.utils.logging import configure_logging

from macrocal_api.middleware.logging import LoggingMiddleware
from macrocal_api.routers.functions import router as functions_router
from macrocal_api.routers.health import router as health_router

logger = structlog.get_logger()


def create_app() -> FastAPI:
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)

    app = FastAPI(
        title="Macrocal API",
        description="Trigger surface for the release-calendar pipelines",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(health_router)
    app.include_router(functions_router)

    logger.info("app_created", cors_origins=settings.cors_origins_list)
    return app


app = create_app()
