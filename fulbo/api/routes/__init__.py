"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Shared error mapping
# ---------------------------------------------------------------------------
from fulbo.services.mvp_service import MvpPermissionError, MvpVoteConflictError
from fulbo.services.notification_service import NotificationNotFoundError
from fulbo.services.roster_service import GameConflictError, GameNotFoundError
from fulbo.services.user_service import UserNotFoundError


def service_error_to_http(e: ValueError) -> HTTPException:
    """Translate a service validation error to its HTTP status."""
    if isinstance(e, (GameNotFoundError, UserNotFoundError, NotificationNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (GameConflictError, MvpVoteConflictError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, MvpPermissionError):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from fulbo.api.routes.users import router as users_router
from fulbo.api.routes.availability import router as availability_router
from fulbo.api.routes.games import router as games_router
from fulbo.api.routes.mvp import router as mvp_router
from fulbo.api.routes.rankings import router as rankings_router
from fulbo.api.routes.admin import router as admin_router

router = APIRouter()
router.include_router(users_router)
router.include_router(availability_router)
router.include_router(games_router)
router.include_router(mvp_router)
router.include_router(rankings_router)
router.include_router(admin_router)
