"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping) lives here; every sub-router
imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from squadfit.services.exceptions import (
    ConcurrencyConflictError,
    ConstraintViolationError,
    InactiveWindowError,
    NotFoundError,
    TeamMembershipConflictError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()

ACTIVITY_RATE_LIMIT = os.getenv("ACTIVITY_RATE_LIMIT", "60/minute")

# ---------------------------------------------------------------------------
# Shared error mapping
# ---------------------------------------------------------------------------
CONFLICT_ERRORS = (
    InactiveWindowError,
    ConcurrencyConflictError,
    ConstraintViolationError,
    TeamMembershipConflictError,
)


def to_http_exception(e: Exception, action: str) -> HTTPException:
    """
    Map a service-layer exception to the HTTPException a route should raise.

    NotFound -> 404, window/concurrency/constraint conflicts -> 409,
    validation errors -> 400, anything else -> 500.
    """
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, CONFLICT_ERRORS):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from squadfit.api.routes.activities import router as activities_router  # noqa: E402
from squadfit.api.routes.members import router as members_router  # noqa: E402
from squadfit.api.routes.leaderboards import router as leaderboards_router  # noqa: E402
from squadfit.api.routes.teams import router as teams_router  # noqa: E402
from squadfit.api.routes.seasons import router as seasons_router  # noqa: E402
from squadfit.api.routes.admin import router as admin_router  # noqa: E402

router = APIRouter()
router.include_router(activities_router)
router.include_router(members_router)
router.include_router(leaderboards_router)
router.include_router(teams_router)
router.include_router(seasons_router)
router.include_router(admin_router)
