"""
ScanLedger Backend — Scan Recorder
====================================

What:  Persists a resolved, sequenced scan as an immutable ledger row.
How:   One INSERT whose sequence_number is the allocator's MAX + 1 subquery,
       with RETURNING to learn the number that was taken, followed by COMMIT.
       The commit is the point after which the scan exists.

Collision Handling:
    A violation of uq_scan_events_direction_day_seq means a concurrent writer
    took the same number. record() rolls back and raises
    SequenceConflictError; record_with_retry() re-runs allocation + insert
    under a tenacity policy:

        stop:   SCAN_MAX_ATTEMPTS attempts in total
        wait:   exponential backoff with jitter, SCAN_RETRY_MIN_WAIT..MAX_WAIT
        retry:  SequenceConflictError only

    Exhausting the attempts raises ScanFailedError (SCAN_FAILED, HTTP 500).
    Any other database failure, including every other integrity error (NOT
    NULL, check constraints), rolls back and raises DatabaseError at once.

The draft is a plain dataclass snapshot of the catalog entry. A rollback
expires every ORM instance in the session, and the retry must not reload the
catalog row (the scan records what the catalog said when it was scanned).
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from scanledger.config import settings
from scanledger.exceptions import DatabaseError, ScanFailedError, SequenceConflictError
from scanledger.models.catalog import MasterCatalogEntry
from scanledger.models.scan import SEQUENCE_CONSTRAINT, Direction, ScanEvent
from scanledger.schemas.scan import ActorContext
from scanledger.services.sequence import SequenceAllocator, sequence_allocator

logger = logging.getLogger(__name__)


# SQLite names the columns of a failed unique constraint, not the constraint
_SQLITE_SEQUENCE_COLUMNS = "scan_events.sequence_number"


def is_sequence_collision(exc: IntegrityError) -> bool:
    """True when the violation is the per-stream sequence constraint and nothing else."""
    detail = str(exc.orig)
    return SEQUENCE_CONSTRAINT in detail or (
        "UNIQUE" in detail and _SQLITE_SEQUENCE_COLUMNS in detail
    )


@dataclass(frozen=True)
class ScanEventDraft:
    """Everything a ledger row needs except its id and sequence number."""

    direction: Direction
    scan_date: date
    scanned_at: datetime
    username: str
    description: str
    barcode: str
    brand: str
    color: str
    size: str
    four_digit: str
    unit: str
    quantity: int
    production: str
    model: str
    model_code: str
    item: str

    @classmethod
    def from_catalog(
        cls,
        entry: MasterCatalogEntry,
        direction: Direction,
        actor: ActorContext,
        scanned_at: datetime,
        scan_date: date,
    ) -> "ScanEventDraft":
        return cls(
            direction=direction,
            scan_date=scan_date,
            scanned_at=scanned_at,
            username=actor.username,
            description=actor.description or "",
            barcode=entry.barcode,
            brand=entry.brand or "",
            color=entry.color or "",
            size=entry.size or "",
            four_digit=entry.four_digit or "",
            unit=entry.unit or "",
            quantity=entry.quantity,
            production=entry.production or "",
            model=entry.model or "",
            model_code=entry.model_code or "",
            item=entry.item or "",
        )

    def row_values(self) -> dict:
        values = asdict(self)
        values["direction"] = self.direction.value
        return values


class ScanRecorder:
    """
    Appends scans to the ledger.

    Args:
        allocator: source of the sequence subquery
        max_attempts / min_wait / max_wait: collision retry policy
    """

    def __init__(
        self,
        allocator: SequenceAllocator = sequence_allocator,
        max_attempts: int = settings.scan_max_attempts,
        min_wait: float = settings.scan_retry_min_wait,
        max_wait: float = settings.scan_retry_max_wait,
    ):
        self.allocator = allocator
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait

    async def record(self, db: AsyncSession, draft: ScanEventDraft) -> ScanEvent:
        """
        Allocate a sequence number and insert one ledger row, then commit.

        Returns:
            A ScanEvent carrying the committed values. It is not attached to
            the session.

        Raises:
            SequenceConflictError: another writer took the same number
            DatabaseError: any other storage failure
        """
        event_id = uuid.uuid4()
        stmt = (
            insert(ScanEvent)
            .values(
                id=event_id,
                sequence_number=self.allocator.sequence_expression(draft.direction, draft.scan_date),
                **draft.row_values(),
            )
            .returning(ScanEvent.sequence_number)
        )

        try:
            result = await db.execute(stmt)
            sequence_number = result.scalar_one()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if not is_sequence_collision(e):
                logger.error(
                    "Ledger insert for %s barcode %s violated a constraint: %s",
                    draft.direction.value,
                    draft.barcode,
                    str(e.orig),
                )
                raise DatabaseError(
                    context={"barcode": draft.barcode, "error_type": type(e).__name__},
                ) from e
            logger.warning(
                "Sequence collision on %s %s for barcode %s",
                draft.direction.value,
                draft.scan_date.isoformat(),
                draft.barcode,
            )
            raise SequenceConflictError(
                direction=draft.direction.value,
                context={"scan_date": draft.scan_date.isoformat(), "barcode": draft.barcode},
            ) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Ledger insert failed for %s barcode %s: %s",
                draft.direction.value,
                draft.barcode,
                str(e),
                exc_info=True,
            )
            raise DatabaseError(
                context={"barcode": draft.barcode, "error_type": type(e).__name__},
            ) from e

        logger.info(
            "Recorded %s #%d for barcode %s by %s",
            draft.direction.value,
            sequence_number,
            draft.barcode,
            draft.username,
        )
        return ScanEvent(id=event_id, sequence_number=sequence_number, **draft.row_values())

    async def record_with_retry(self, db: AsyncSession, draft: ScanEventDraft) -> ScanEvent:
        """
        record(), retried on sequence collisions up to max_attempts in total.

        Raises:
            ScanFailedError: every attempt collided
            DatabaseError: a non-collision storage failure (not retried)
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(SequenceConflictError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.min_wait,
                max=self.max_wait,
                jitter=self.min_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    event = await self.record(db, draft)
        except RetryError as e:
            logger.error(
                "Giving up on %s scan of %s after %d sequence collisions",
                draft.direction.value,
                draft.barcode,
                self.max_attempts,
            )
            raise ScanFailedError(
                context={
                    "barcode": draft.barcode,
                    "direction": draft.direction.value,
                    "attempts": self.max_attempts,
                },
            ) from e
        return event


scan_recorder = ScanRecorder()
