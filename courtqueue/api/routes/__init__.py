"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, constants) lives here; every sub-router
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
limiter = Limiter(key_func=get_remote_address, enabled=not IS_TEST_ENV)

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------
INVALID_CREDENTIALS_RESPONSE = HTTPException(
    status_code=401, detail="Username or password is incorrect"
)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from courtqueue.api.routes.auth import router as auth_router  # noqa: E402
from courtqueue.api.routes.sessions import router as sessions_router  # noqa: E402
from courtqueue.api.routes.players import router as players_router  # noqa: E402
from courtqueue.api.routes.matches import router as matches_router  # noqa: E402
from courtqueue.api.routes.saved_players import router as saved_players_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(sessions_router)
router.include_router(players_router)
router.include_router(matches_router)
router.include_router(saved_players_router)
