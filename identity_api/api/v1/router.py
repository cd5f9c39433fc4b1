"""API v1 router configuration."""

from fastapi import APIRouter

from identity_api.api.v1.endpoints import auth, csrf, health, media

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(csrf.router, prefix="/csrf", tags=["CSRF"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(media.router, prefix="/media", tags=["Media"])
