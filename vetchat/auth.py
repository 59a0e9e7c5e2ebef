"""Bearer-token guard for the admin dashboard endpoints.

Appointment listings, status changes and the conversation list carry owner
names and phone numbers, so they sit behind one shared ADMIN_API_KEY sent as
``Authorization: Bearer <token>``. There is no per-user identity, expiry or
scope.

  key set,   token matches        → allow
  key set,   token missing        → 401 "Admin token required"
  key set,   token wrong          → 401 "Invalid admin token"
  key empty, DEBUG=true           → allow (local dashboard development)
  key empty, DEBUG=false          → 403 (admin dashboard disabled)
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vetchat.config import settings

log = logging.getLogger("vetchat.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency guarding the appointment and conversation admin routes."""
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return
        log.warning("Admin dashboard request refused: ADMIN_API_KEY unset")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin dashboard is disabled. Set ADMIN_API_KEY to enable it.",
        )

    if credentials is None:
        log.warning("Admin dashboard request without a token")
        raise _unauthorized("Admin token required")

    if not hmac.compare_digest(credentials.credentials.encode(), key.encode()):
        log.warning("Admin dashboard request with an invalid token")
        raise _unauthorized("Invalid admin token")
