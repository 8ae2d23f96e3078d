"""Bearer-token guard for the pipeline trigger endpoints."""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from macrocal_shared.config import settings

bearer_scheme = HTTPBearer(auto_error=False)


async def require_trigger_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """Reject the request unless it carries the configured trigger token.

    With no PIPELINE_TRIGGER_TOKEN configured every request is accepted,
    which is how local runs and the test suite call the endpoints.
    """
    expected = settings.pipeline_trigger_token
    if not expected:
        return
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(
            status_code=401,
            detail="Invalid trigger token",
            headers={"WWW-Authenticate": "Bearer"},
        )
