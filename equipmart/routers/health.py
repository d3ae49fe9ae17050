"""Health check endpoint for system monitoring."""

import logging
import time
from typing import List, Literal

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..db import check_connection
from ..dependencies import get_cache
from ..utils.cache import CacheService

# Create router
router = APIRouter(prefix="/health", tags=["System"])

# Configure logger
logger = logging.getLogger(__name__)


class ServiceCheck(BaseModel):
    """Model for individual service health check."""

    name: str
    status: Literal["healthy", "unhealthy"]
    duration_ms: float | None = None


class HealthCheckResponse(BaseModel):
    """Response model for health check endpoint."""

    status: Literal["healthy", "unhealthy"]
    timestamp: float
    duration_ms: float
    checks: List[ServiceCheck]


async def _timed_check(name: str, check) -> ServiceCheck:
    started = time.time()
    healthy = await check()
    if not healthy:
        logger.error(f"{name.capitalize()} health check failed")
    return ServiceCheck(
        name=name,
        status="healthy" if healthy else "unhealthy",
        duration_ms=round((time.time() - started) * 1000, 2),
    )


@router.get("", summary="System health check", response_model=HealthCheckResponse)
async def health_check(cache: CacheService = Depends(get_cache)):
    """Check the database and cache.

    Returns:
        The health report; status 503 if any dependency is unhealthy
    """
    start_time = time.time()
    checks = [
        await _timed_check("database", check_connection),
        await _timed_check("cache", cache.ping),
    ]

    all_healthy = all(check.status == "healthy" for check in checks)
    response = HealthCheckResponse(
        status="healthy" if all_healthy else "unhealthy",
        timestamp=time.time(),
        duration_ms=round((time.time() - start_time) * 1000, 2),
        checks=checks,
    )

    if not all_healthy:
        return JSONResponse(status_code=503, content=response.model_dump())
    return response
