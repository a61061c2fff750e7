"""
ScanLedger Backend — Scan Ledger SQLAlchemy Model
===================================================

What:  ORM model for `scan_events`, the append-only ledger of every receiving
       and shipping scan. The ledger is the system of record for movement
       history.
Who:   Inserted by ScanRecorder; read by the history and today endpoints.

Table Design:
    - Catalog attributes (brand, model, color, ...) are copied in at scan time
      and never re-joined, so historical reports do not change when a catalog
      entry is edited later.
    - sequence_number is unique within (direction, scan_date). The unique
      constraint is what makes concurrent allocation safe across processes.
    - scan_date is the calendar day of scanned_at in the warehouse timezone,
      stored explicitly so the constraint can cover it.
    - Rows are never updated or deleted by this service.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from scanledger.database import Base


# Rejects a second row claiming the same number in one (direction, day) stream
SEQUENCE_CONSTRAINT = "uq_scan_events_direction_day_seq"


class Direction(str, enum.Enum):
    """Which way goods move. Each direction has its own sequence stream."""

    RECEIVING = "RECEIVING"
    SHIPPING = "SHIPPING"


class ScanEvent(Base):
    """
    One recorded scan.

    Query Patterns:
        - Allocate: MAX(sequence_number) WHERE direction = :d AND scan_date = :day
          → served by uq_scan_events_direction_day_seq
        - User history: WHERE direction = :d AND username = :u ORDER BY scanned_at DESC
          → idx_scan_events_user_history
        - Today: WHERE direction = :d AND scan_date = :day ORDER BY scanned_at DESC
    """

    __tablename__ = "scan_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Scan identity ─────────────────────────────────────────────────────
    direction: Mapped[str] = mapped_column(String(16), nullable=False)
    scan_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Calendar day of scanned_at in the warehouse timezone",
    )
    sequence_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Position in the (direction, scan_date) stream; unique, may have gaps",
    )
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Actor ─────────────────────────────────────────────────────────────
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", comment="Actor description at scan time"
    )

    # ── Catalog snapshot ──────────────────────────────────────────────────
    barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    color: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    size: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    four_digit: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    production: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    model: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    model_code: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    item: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    __table_args__ = (
        UniqueConstraint(
            "direction",
            "scan_date",
            "sequence_number",
            name=SEQUENCE_CONSTRAINT,
        ),
        Index("idx_scan_events_user_history", direction, username, scanned_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<ScanEvent(direction='{self.direction}', scan_date='{self.scan_date}', "
            f"sequence_number={self.sequence_number}, barcode='{self.barcode}')>"
        )
