"""
ScanLedger Backend — Scan Service Tests
=========================================

What:  Tests for the end-to-end scan workflow and the ledger read queries.
How:   A real ScanService over the in-memory database; individual
       collaborators are swapped for mocks where a failure is needed.

What we test:
    ✅ Receiving and shipping streams number independently from 1
    ✅ Rejections (maintenance, role, blank, unknown barcode) write nothing
    ✅ Stock and notifier failures never undo a recorded scan
    ✅ History is per user and newest first; today is paginated
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from scanledger.exceptions import (
    BarcodeNotFoundError,
    BarcodeRequiredError,
    InvalidPositionError,
    MaintenanceWindowError,
)
from scanledger.models.scan import Direction, ScanEvent
from scanledger.models.stock import StockSummary
from scanledger.schemas.scan import ActorContext

from conftest import JAKARTA

RECEIVER = ActorContext(username="budi", role="RECEIVING", description="Dock 1")
SHIPPER = ActorContext(username="sari", role="SHIPPING", description="Dock 4")
ADMIN = ActorContext(username="tono", role="IT")


async def count_rows(db) -> int:
    return (await db.execute(select(func.count(ScanEvent.id)))).scalar()


class TestScanWorkflow:

    @pytest.mark.asyncio
    async def test_receiving_then_shipping_numbering(self, scan_service, db_session, catalog):
        first = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")
        second = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "BOX010")
        shipped = await scan_service.scan(db_session, Direction.SHIPPING, SHIPPER, "ABC123")

        assert first.sequence_number == 1
        assert second.sequence_number == 2
        assert shipped.sequence_number == 1
        assert first.model == "M1"
        assert first.color == "RED"
        assert first.size == "42"
        assert first.quantity == 1
        assert first.username == "budi"
        assert await count_rows(db_session) == 3

        stored = (
            await db_session.execute(
                select(ScanEvent).where(ScanEvent.direction == "RECEIVING", ScanEvent.sequence_number == 1)
            )
        ).scalar_one()
        assert (stored.brand, stored.production) == ("ADIDAS", "LINE1")

    @pytest.mark.asyncio
    async def test_barcode_is_trimmed(self, scan_service, db_session, catalog):
        result = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "  ABC123\n")
        assert result.barcode == "ABC123"

    @pytest.mark.asyncio
    async def test_it_may_scan_both_directions(self, scan_service, db_session, catalog):
        await scan_service.scan(db_session, Direction.RECEIVING, ADMIN, "ABC123")
        await scan_service.scan(db_session, Direction.SHIPPING, ADMIN, "ABC123")
        assert await count_rows(db_session) == 2

    @pytest.mark.asyncio
    async def test_new_day_restarts_numbering(self, scan_service, db_session, catalog, clock):
        await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")
        await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")

        clock.advance(days=1)
        result = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")

        assert result.sequence_number == 1

    @pytest.mark.asyncio
    async def test_unknown_barcode_writes_nothing(self, scan_service, db_session, catalog, notifier):
        queue = notifier.subscribe()

        with pytest.raises(BarcodeNotFoundError) as exc_info:
            await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ZZZZZZ")

        assert exc_info.value.barcode == "ZZZZZZ"
        assert await count_rows(db_session) == 0
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_wrong_role_rejected(self, scan_service, db_session, catalog):
        with pytest.raises(InvalidPositionError):
            await scan_service.scan(db_session, Direction.RECEIVING, SHIPPER, "ABC123")
        assert await count_rows(db_session) == 0

    @pytest.mark.asyncio
    async def test_blank_barcode_rejected(self, scan_service, db_session, catalog):
        with pytest.raises(BarcodeRequiredError):
            await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "   ")

    @pytest.mark.asyncio
    async def test_maintenance_window_overrides_everything(self, scan_service, db_session, catalog, clock):
        clock.now = datetime(2024, 1, 15, 7, 30, 4, tzinfo=JAKARTA)

        with pytest.raises(MaintenanceWindowError) as exc_info:
            await scan_service.scan(db_session, Direction.RECEIVING, SHIPPER, "")

        assert exc_info.value.retry_after == 3
        assert await count_rows(db_session) == 0

    @pytest.mark.asyncio
    async def test_scan_adjusts_stock(self, scan_service, db_session, catalog):
        await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "BOX010")
        await scan_service.scan(db_session, Direction.SHIPPING, SHIPPER, "ABC123")

        summaries = {
            row.barcode: row.on_hand
            for row in (await db_session.execute(select(StockSummary))).scalars()
        }
        assert summaries == {"BOX010": 10, "ABC123": 0}

    @pytest.mark.asyncio
    async def test_scan_publishes_to_dashboard(self, scan_service, db_session, catalog, notifier):
        queue = notifier.subscribe()

        await scan_service.scan(db_session, Direction.SHIPPING, SHIPPER, "ABC123")

        event = queue.get_nowait()
        assert event.type == "SHIPPING"
        assert event.sequence_number == 1
        assert event.username == "sari"


class TestBestEffortStages:

    @pytest.mark.asyncio
    async def test_stock_failure_keeps_scan(self, scan_service, db_session, catalog):
        scan_service.stock = MagicMock()
        scan_service.stock.apply_delta = AsyncMock(side_effect=RuntimeError("summary table locked"))

        result = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")

        assert result.sequence_number == 1
        assert await count_rows(db_session) == 1

    @pytest.mark.asyncio
    async def test_stock_session_failure_keeps_scan(self, scan_service, db_session, catalog):
        def broken_factory():
            raise RuntimeError("no connection")

        scan_service.stock.session_factory = broken_factory

        result = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")

        assert result.sequence_number == 1
        assert await count_rows(db_session) == 1

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_scan(self, scan_service, db_session, catalog):
        scan_service.notifier = MagicMock()
        scan_service.notifier.publish.side_effect = RuntimeError("feed down")

        result = await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")

        assert result.sequence_number == 1
        assert await count_rows(db_session) == 1


class TestLedgerQueries:

    @pytest.mark.asyncio
    async def test_history_is_per_user_and_newest_first(self, scan_service, db_session, catalog, clock):
        for _ in range(12):
            await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")
            clock.advance(seconds=1)
        await scan_service.scan(db_session, Direction.RECEIVING, ADMIN, "BOX010")

        history = await scan_service.history(db_session, Direction.RECEIVING, "budi", limit=10)

        numbers = [item.sequence_number for item in history.data]
        assert numbers == list(range(12, 2, -1))
        assert all(item.username == "budi" for item in history.data)

    @pytest.mark.asyncio
    async def test_history_is_per_direction(self, scan_service, db_session, catalog):
        await scan_service.scan(db_session, Direction.RECEIVING, ADMIN, "ABC123")

        history = await scan_service.history(db_session, Direction.SHIPPING, "tono")

        assert history.data == []

    @pytest.mark.asyncio
    async def test_today_paginates_current_stream(self, scan_service, db_session, catalog, clock):
        clock.advance(days=-1)
        await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")
        clock.advance(days=1)
        for _ in range(5):
            await scan_service.scan(db_session, Direction.RECEIVING, RECEIVER, "ABC123")

        page_one = await scan_service.today(db_session, Direction.RECEIVING, page=1, limit=2)
        page_three = await scan_service.today(db_session, Direction.RECEIVING, page=3, limit=2)

        assert [item.sequence_number for item in page_one.data] == [5, 4]
        assert [item.sequence_number for item in page_three.data] == [1]
        assert page_one.pagination.total == 5
        assert page_one.pagination.total_pages == 3
