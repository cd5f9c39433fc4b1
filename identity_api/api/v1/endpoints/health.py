"""Health check endpoints."""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from identity_api.config import settings
from identity_api.core.redis_client import check_redis_connection
from identity_api.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health check including backing services."""

    database: str
    redis: str
    google_oauth: str
    media_storage: str


def _provider_status(*credentials: str) -> str:
    return "configured" if all(credentials) else "disabled"


def _component_status(healthy: bool | None) -> str:
    if healthy is None:
        return "disabled"
    return "healthy" if healthy else "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check(response: Response) -> DetailedHealthResponse:
    """
    Detailed health check with database and Redis status.

    Redis is optional; when no host is configured it reports ``disabled``
    and does not degrade the overall status. A degraded service answers 503
    so load balancers take it out of rotation. Google sign-in and media
    storage are reported as ``configured`` or ``disabled`` from settings.
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    healthy = db_healthy and redis_healthy is not False
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return DetailedHealthResponse(
        status="healthy" if healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=_component_status(db_healthy),
        redis=_component_status(redis_healthy),
        google_oauth=_provider_status(
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_callback_url,
        ),
        media_storage=_provider_status(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
        ),
    )
