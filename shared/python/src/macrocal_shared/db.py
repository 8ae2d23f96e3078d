"""
db.py — Supabase client for the pipeline and trigger API.

Every caller writes (releases, indicators, sync_logs), so there is one
service-role client per process.

Usage:
    from macrocal_shared.db import get_supabase_client

    supabase = get_supabase_client()
"""

from __future__ import annotations

import threading
from typing import Optional

import structlog
from supabase import Client, create_client

from macrocal_shared.config import settings

logger = structlog.get_logger(__name__)

_client_lock = threading.Lock()
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Return the process-wide service-role Supabase client, creating it on first use.

    Raises:
        RuntimeError: SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured.
    """
    global _client

    with _client_lock:
        if _client is None:
            missing = [
                env
                for env, value in (
                    ("SUPABASE_URL", settings.supabase_url),
                    ("SUPABASE_SERVICE_KEY", settings.supabase_service_key),
                )
                if not value
            ]
            if missing:
                raise RuntimeError(f"{', '.join(missing)} not set. Set it in .env.")
            _client = create_client(settings.supabase_url, settings.supabase_service_key)
            logger.info("supabase_client_created", url=settings.supabase_url)
        return _client
