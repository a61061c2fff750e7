"""
ScanLedger Backend — Health Check Route
=========================================

What:  GET /health for load balancer and container probes.
How:   Runs SELECT 1 against the database and reports the number of live
       dashboard subscribers on this instance.

Status levels:
    healthy     database reachable (HTTP 200)
    unhealthy   database unreachable (HTTP 503, take the instance out of rotation)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from scanledger import __version__
from scanledger.database import engine
from scanledger.schemas.scan import HealthResponse
from scanledger.services.notifier import dashboard_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        dashboard_subscribers=dashboard_notifier.subscriber_count,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
