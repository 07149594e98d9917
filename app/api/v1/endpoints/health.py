"""Health check API endpoints."""

from fastapi import APIRouter

from app.core.config import settings
from app.core.database import db_client
from app.schemas.response import HealthCheckResponse
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=HealthCheckResponse,
    tags=["Health"],
    summary="Health check endpoint",
    description="Check if the service is running and its database is reachable",
    operation_id="get_service_health_status",
)
async def health_check() -> HealthCheckResponse:
    db_health = await db_client.health_check()
    if db_health["status"] != "healthy":
        LOGGER.warning("Health check degraded", extra={"database": db_health})

    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        database=db_health,
    )
