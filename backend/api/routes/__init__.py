"""API Routes."""

from fastapi import APIRouter

from .admin import router as admin_router
from .auth import router as auth_router
from .content import router as content_router
from .health import router as health_router
from .payments import router as payments_router
from .plans import router as plans_router
from .subscriptions import router as subscriptions_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(auth_router)
api_router.include_router(plans_router)
api_router.include_router(subscriptions_router)
api_router.include_router(payments_router)
api_router.include_router(content_router)
api_router.include_router(admin_router)
