"""
ScanLedger Backend — Receiving & Shipping Route Handlers
==========================================================

What:  The scan, history and today endpoints for both directions.
How:   build_scan_router() produces one router per Direction. The direction is
       fixed by the URL prefix, never read from the request body.

Endpoints (per direction, prefix /api/receiving or /api/shipping):
    POST /scan      record a barcode scan                     → 201
    GET  /history   caller's last HISTORY_LIMIT scans         → 200
    GET  /today     today's stream, paginated                 → 200

Handlers stay thin: authenticate, delegate to ScanService, return its
schema. Every error is raised as an application exception and rendered by
the global handlers in main.py.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from scanledger.database import get_db_session
from scanledger.models.scan import Direction
from scanledger.schemas.scan import (
    ActorContext,
    ErrorResponse,
    ScanHistoryResponse,
    ScanRequest,
    ScanResponse,
    TodayScansResponse,
)
from scanledger.security import get_current_actor
from scanledger.services.scan_service import ScanService, get_scan_service

logger = logging.getLogger(__name__)

SCAN_ERROR_RESPONSES = {
    400: {"description": "Barcode missing", "model": ErrorResponse},
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    403: {"description": "Position not allowed for this direction", "model": ErrorResponse},
    404: {"description": "Barcode not in master catalog", "model": ErrorResponse},
    500: {"description": "Scan could not be recorded", "model": ErrorResponse},
    503: {"description": "Maintenance window in progress", "model": ErrorResponse},
}


def build_scan_router(direction: Direction) -> APIRouter:
    """Router for one direction's scan stream."""
    slug = direction.value.lower()
    router = APIRouter(prefix=f"/api/{slug}", tags=[direction.value.title()])

    @router.post(
        "/scan",
        status_code=201,
        response_model=ScanResponse,
        responses=SCAN_ERROR_RESPONSES,
        summary=f"Record a {slug} scan",
        description=(
            f"Resolves the barcode against the master catalog and appends it to "
            f"today's {slug} sequence. Allowed positions: {direction.value}, IT."
        ),
    )
    async def scan(
        body: ScanRequest,
        actor: ActorContext = Depends(get_current_actor),
        db: AsyncSession = Depends(get_db_session),
        service: ScanService = Depends(get_scan_service),
    ) -> ScanResponse:
        logger.info("%s scan request from %s: %r", direction.value, actor.username, body.barcode)
        return await service.scan(db, direction=direction, actor=actor, barcode=body.barcode)

    @router.get(
        "/history",
        response_model=ScanHistoryResponse,
        responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        summary=f"Caller's recent {slug} scans",
    )
    async def history(
        actor: ActorContext = Depends(get_current_actor),
        db: AsyncSession = Depends(get_db_session),
        service: ScanService = Depends(get_scan_service),
    ) -> ScanHistoryResponse:
        return await service.history(db, direction=direction, username=actor.username)

    @router.get(
        "/today",
        response_model=TodayScansResponse,
        responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        summary=f"All {slug} scans recorded today",
    )
    async def today(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=100, ge=1, le=1000),
        actor: ActorContext = Depends(get_current_actor),
        db: AsyncSession = Depends(get_db_session),
        service: ScanService = Depends(get_scan_service),
    ) -> TodayScansResponse:
        return await service.today(db, direction=direction, page=page, limit=limit)

    return router


receiving_router = build_scan_router(Direction.RECEIVING)
shipping_router = build_scan_router(Direction.SHIPPING)
