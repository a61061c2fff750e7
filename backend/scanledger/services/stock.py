"""
ScanLedger Backend — Stock Adjuster
=====================================

What:  Applies a recorded scan's quantity to the rolling stock summary.
How:   Opens its own session and transaction, separate from the request's
       ledger transaction, so nothing it does can undo a recorded scan.
       An INSERT ... ON CONFLICT DO NOTHING makes sure the barcode has a row
       (on_hand 0), then one atomic UPDATE ... RETURNING applies the delta.
       Two stations scanning a new barcode at once both land on the same row
       and neither delta is lost.

Arithmetic:
    RECEIVING  on_hand = on_hand + quantity
    SHIPPING   on_hand = max(on_hand - quantity, 0)

Best effort:
    apply_delta() never raises. A failure is logged with its traceback and
    reported as a skipped adjustment. The summary may then drift from the
    ledger until a reconciliation pass rebuilds it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import case, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scanledger.database import async_session_factory
from scanledger.models.scan import Direction
from scanledger.models.stock import StockSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockAdjustment:
    """Result of one adjustment. `reason` is set only when skipped."""

    applied: bool
    on_hand: Optional[int] = None
    reason: Optional[str] = None


class StockAdjuster:
    """Best-effort maintenance of stock_summaries."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory):
        self.session_factory = session_factory

    @staticmethod
    def _ensure_row(session: AsyncSession, barcode: str):
        """Empty summary row for a barcode; a no-op when one already exists."""
        dialect = session.get_bind().dialect.name
        insert = sqlite_insert if dialect == "sqlite" else postgresql_insert
        return (
            insert(StockSummary)
            .values(barcode=barcode, on_hand=0, updated_at=datetime.now(timezone.utc))
            .on_conflict_do_nothing(index_elements=["barcode"])
        )

    @staticmethod
    def _adjusted(direction: Direction, quantity: int):
        if direction is Direction.RECEIVING:
            return StockSummary.on_hand + quantity
        return case(
            (StockSummary.on_hand - quantity < 0, 0),
            else_=StockSummary.on_hand - quantity,
        )

    async def apply_delta(self, barcode: str, direction: Direction, quantity: int) -> StockAdjustment:
        """
        Move the on-hand figure for a barcode by one scan's quantity.

        Returns:
            StockAdjustment(applied=True, on_hand=...) on success, otherwise
            StockAdjustment(applied=False, reason=...).
        """
        if quantity <= 0:
            return StockAdjustment(applied=False, reason="non-positive quantity")

        try:
            async with self.session_factory() as session:
                try:
                    await session.execute(self._ensure_row(session, barcode))
                    result = await session.execute(
                        update(StockSummary)
                        .where(StockSummary.barcode == barcode)
                        .values(
                            on_hand=self._adjusted(direction, quantity),
                            updated_at=datetime.now(timezone.utc),
                        )
                        .returning(StockSummary.on_hand)
                        .execution_options(synchronize_session=False)
                    )
                    on_hand = result.scalar_one()
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except Exception as e:
            logger.error(
                "Stock adjustment skipped for %s %s x%d: %s",
                direction.value,
                barcode,
                quantity,
                str(e),
                exc_info=True,
            )
            return StockAdjustment(applied=False, reason=type(e).__name__)

        logger.debug("Stock for %s is now %d", barcode, on_hand)
        return StockAdjustment(applied=True, on_hand=on_hand)


stock_adjuster = StockAdjuster()
