"""
main.py — Serve the trigger API.

Start with:
    macrocal-api
    uvicorn macrocal_api.app:app --reload --port 8000
"""

from __future__ import annotations

import uvicorn

from macrocal_shared.config import settings


def run() -> None:
    uvicorn.run(
        "macrocal_api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
