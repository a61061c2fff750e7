"""
ScanLedger Backend — Scan Service (Workflow Orchestrator)
===========================================================

What:  Runs the scan-ingestion workflow and the ledger read queries.
Who:   Called by the receiving and shipping route handlers.

Orchestration Flow (POST /api/{direction}/scan):
    ┌──────┐   ┌─────────┐   ┌──────────────────┐   ┌───────┐   ┌────────┐
    │ Gate │──▶│ Resolve │──▶│ Allocate + Record│──▶│ Stock │──▶│ Notify │
    └──────┘   └─────────┘   └──────────────────┘   └───────┘   └────────┘
     sync        read          commit = RECORDED      advisory    advisory

    Before the ledger commit, any failure aborts the request and leaves
    nothing behind:
        Gate rejects        → MaintenanceWindowError / InvalidPositionError /
                              BarcodeRequiredError
        Catalog miss        → BarcodeNotFoundError (logged at INFO)
        Collisions exhaust  → ScanFailedError
        Storage failure     → DatabaseError

    After the commit, stock adjustment and notification failures are logged
    and swallowed. The response reports the recorded scan either way.

Idempotency:
    There is no client idempotency key. A client that resubmits after a
    timeout records a second scan with a new sequence number.
"""

import logging
from datetime import datetime
from math import ceil
from typing import Callable, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scanledger.config import settings
from scanledger.exceptions import BarcodeNotFoundError, DatabaseError
from scanledger.middleware.request_id import request_id_var
from scanledger.models.scan import Direction, ScanEvent
from scanledger.schemas.scan import (
    ActorContext,
    PaginationInfo,
    ScanHistoryItem,
    ScanHistoryResponse,
    ScanResponse,
    TodayScansResponse,
)
from scanledger.services.catalog import CatalogResolver, catalog_resolver
from scanledger.services.notifier import DashboardNotifier, dashboard_notifier
from scanledger.services.recorder import ScanEventDraft, ScanRecorder, scan_recorder
from scanledger.services.scan_gate import ScanGate, build_scan_gate
from scanledger.services.sequence import scan_day
from scanledger.services.stock import StockAdjuster, stock_adjuster

logger = logging.getLogger(__name__)


def warehouse_now() -> datetime:
    """Current time in the warehouse timezone."""
    return datetime.now(settings.tzinfo)


class ScanService:
    """
    Scan workflow with every collaborator injectable.

    The module-level `scan_service` wires the production collaborators;
    tests build their own instance with a fixed clock and an in-memory
    session factory.
    """

    def __init__(
        self,
        gate: Optional[ScanGate] = None,
        resolver: CatalogResolver = catalog_resolver,
        recorder: ScanRecorder = scan_recorder,
        stock: StockAdjuster = stock_adjuster,
        notifier: DashboardNotifier = dashboard_notifier,
        clock: Callable[[], datetime] = warehouse_now,
    ):
        self.gate = gate or build_scan_gate()
        self.resolver = resolver
        self.recorder = recorder
        self.stock = stock
        self.notifier = notifier
        self.clock = clock

    @property
    def tz(self):
        return self.gate.tz

    async def scan(
        self,
        db: AsyncSession,
        direction: Direction,
        actor: ActorContext,
        barcode: Optional[str],
    ) -> ScanResponse:
        """
        Record one barcode scan.

        Args:
            db: request session; the ledger row commits on it
            direction: which stream and role check apply (from the URL path)
            actor: verified identity from the bearer token
            barcode: raw scanned value

        Returns:
            ScanResponse for the committed ledger row.

        Raises:
            MaintenanceWindowError, InvalidPositionError, BarcodeRequiredError,
            BarcodeNotFoundError, ScanFailedError, DatabaseError
        """
        rid = request_id_var.get("")
        now = self.clock()

        # ── Step 1: Gate ──────────────────────────────────────────────────
        decision = self.gate.admit(now, actor.role, direction, barcode)
        if not decision.admitted:
            logger.warning(
                "[%s] %s scan by %s (%s) rejected: %s",
                rid,
                direction.value,
                actor.username,
                actor.role,
                decision.reason.value,
            )
            raise decision.to_exception()

        code = barcode.strip()

        # ── Step 2: Resolve ───────────────────────────────────────────────
        entry = await self.resolver.resolve(db, code)
        if entry is None:
            logger.info("[%s] %s scan of unknown barcode %s by %s", rid, direction.value, code, actor.username)
            raise BarcodeNotFoundError(barcode=code)

        # ── Step 3: Allocate + record (durable from here on) ──────────────
        draft = ScanEventDraft.from_catalog(
            entry,
            direction=direction,
            actor=actor,
            scanned_at=now,
            scan_date=scan_day(now, self.tz),
        )
        event = await self.recorder.record_with_retry(db, draft)

        # ── Step 4: Stock summary (best effort) ───────────────────────────
        try:
            adjustment = await self.stock.apply_delta(event.barcode, direction, event.quantity)
            if not adjustment.applied:
                logger.warning(
                    "[%s] Stock summary not adjusted for %s #%d: %s",
                    rid,
                    direction.value,
                    event.sequence_number,
                    adjustment.reason,
                )
        except Exception:
            logger.error(
                "[%s] Stock adjuster raised for %s #%d; scan stays recorded",
                rid,
                direction.value,
                event.sequence_number,
                exc_info=True,
            )

        # ── Step 5: Live feed (fire and forget) ───────────────────────────
        try:
            self.notifier.publish(event)
        except Exception:
            logger.error("[%s] Dashboard notification failed", rid, exc_info=True)

        return ScanResponse(
            sequence_number=event.sequence_number,
            barcode=event.barcode,
            model=event.model,
            color=event.color,
            size=event.size,
            quantity=event.quantity,
            timestamp=event.scanned_at,
            username=event.username,
        )

    async def history(
        self,
        db: AsyncSession,
        direction: Direction,
        username: str,
        limit: int = settings.history_limit,
    ) -> ScanHistoryResponse:
        """The user's most recent scans in one direction, newest first."""
        try:
            result = await db.execute(
                select(ScanEvent)
                .where(ScanEvent.direction == direction.value)
                .where(ScanEvent.username == username)
                .order_by(desc(ScanEvent.scanned_at), desc(ScanEvent.sequence_number))
                .limit(limit)
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error fetching %s history for %s: %s", direction.value, username, str(e))
            raise DatabaseError(
                message="Could not retrieve scan history. Please try again.",
                context={"direction": direction.value, "username": username},
            ) from e

        return ScanHistoryResponse(data=[ScanHistoryItem.model_validate(row) for row in rows])

    async def today(
        self,
        db: AsyncSession,
        direction: Direction,
        page: int = 1,
        limit: int = 100,
    ) -> TodayScansResponse:
        """Every scan in today's stream for a direction, newest first, one page at a time."""
        day = scan_day(self.clock(), self.tz)
        offset = (page - 1) * limit
        same_stream = (ScanEvent.direction == direction.value, ScanEvent.scan_date == day)

        try:
            total = (
                await db.execute(select(func.count(ScanEvent.id)).where(*same_stream))
            ).scalar() or 0
            result = await db.execute(
                select(ScanEvent)
                .where(*same_stream)
                .order_by(desc(ScanEvent.sequence_number))
                .offset(offset)
                .limit(limit)
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing today's %s scans: %s", direction.value, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve today's scans. Please try again.",
                context={"direction": direction.value, "scan_date": day.isoformat()},
            ) from e

        return TodayScansResponse(
            data=[ScanHistoryItem.model_validate(row) for row in rows],
            pagination=PaginationInfo(
                page=page,
                limit=limit,
                total=total,
                total_pages=ceil(total / limit) if limit else 0,
            ),
        )


scan_service = ScanService()


def get_scan_service() -> ScanService:
    """FastAPI dependency; tests override it with a fixture-built service."""
    return scan_service
