"""API router aggregator.

All endpoint routers are included here.
"""

from fastapi import APIRouter

from auth_service.api.routes import auth

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])
