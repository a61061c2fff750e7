"""
ScanLedger Backend — Sequence Allocator
=========================================

What:  Computes the next per-day, per-direction scan sequence number.
How:   next = MAX(sequence_number) + 1 over ledger rows with the same direction
       and scan_date, or 1 when the day has none.

Atomicity:
    Reading the maximum and inserting in two separate statements lets two
    scanners read the same maximum. The recorder therefore never calls
    next_sequence() on the write path; it embeds sequence_expression() in the
    INSERT itself, and the unique constraint
    uq_scan_events_direction_day_seq rejects whichever concurrent writer
    loses the race. The loser rolls back and retries with a fresh maximum.

    The resulting stream never repeats a number. It may skip one when an
    attempt fails after allocation; skipped numbers are not reused.

Calendar day:
    The day of a scan is the date of its server timestamp in the warehouse
    timezone (WAREHOUSE_TIMEZONE), so every instance agrees on when a new
    stream starts.
"""

from datetime import date, datetime, tzinfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from scanledger.models.scan import Direction, ScanEvent


def scan_day(now: datetime, tz: tzinfo) -> date:
    """Calendar day of `now` in the warehouse timezone. Naive values are taken as local."""
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(tz).date()


class SequenceAllocator:
    """Builds and evaluates the per-stream MAX + 1 computation."""

    def sequence_expression(self, direction: Direction, day: date) -> ColumnElement[int]:
        """
        Scalar subquery yielding the next sequence number for a stream.

        Selects from an alias of scan_events so it can sit inside an INSERT
        into the same table without being correlated to the insert target.
        """
        prior = ScanEvent.__table__.alias("prior_scans")
        return (
            select(func.coalesce(func.max(prior.c.sequence_number), 0) + 1)
            .where(prior.c.direction == direction.value)
            .where(prior.c.scan_date == day)
            .scalar_subquery()
        )

    async def next_sequence(self, db: AsyncSession, direction: Direction, day: date) -> int:
        """
        The number the next scan in (direction, day) would receive.

        Read-only. Suitable for display; the value may be taken by another
        writer before the caller could use it.
        """
        result = await db.execute(select(self.sequence_expression(direction, day)))
        return int(result.scalar_one())


sequence_allocator = SequenceAllocator()
