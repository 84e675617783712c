"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.infrastructure.config import settings
from storefront.infrastructure.database import get_session_factory

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="storefront-api",
        version=settings.api_version,
    )


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """Check if service is ready to accept requests.

    With the SQL backend the database must answer a trivial query.

    Returns:
        Readiness status (503 when the database is unreachable).
    """
    if settings.store_backend == "sql":
        try:
            async with get_session_factory()() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.warning("readiness_check_failed", error=str(e))
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unavailable"},
            )
    return JSONResponse(content={"status": "ready"})
