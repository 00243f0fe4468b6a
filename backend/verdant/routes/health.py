"""
Verdant Backend: Health Check Route
===================================

What:  Health check endpoint for monitoring and load balancer checks.
How:   Checks the database and reports the AI capability's state.

Status levels:
    - healthy:   database reachable, AI capability available
    - degraded:  database reachable, AI unavailable (care is still recorded;
                 only photo enrichment is skipped) → HTTP 200
    - unhealthy: database unreachable → HTTP 503

The AI check reads configuration and circuit breaker state only; it never
calls the provider, so health checks cost no quota.
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from verdant import __version__
from verdant.database import engine
from verdant.dependencies import get_ai_service
from verdant.schemas.care import HealthResponse
from verdant.services.gemini_service import GeminiService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    ai_service: GeminiService = Depends(get_ai_service),
) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    ai_status = ai_service.status
    if ai_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        ai=ai_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
