"""
Authorization dependencies for FastAPI routes.

Member identity comes from the external identity provider; this service only
guards its administrative endpoints with a shared token.
"""

import logging
import os
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)


def _admin_token() -> Optional[str]:
    return os.getenv("ADMIN_API_TOKEN") or None


async def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """
    Dependency guarding admin routes.

    Compares the X-Admin-Token header with ADMIN_API_TOKEN. When no token is
    configured (local development) admin routes are open.

    Raises:
        HTTPException: 401 if the token is missing or wrong
    """
    expected = _admin_token()
    if expected is None:
        return
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        logger.warning("Rejected admin request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
