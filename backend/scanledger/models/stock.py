"""
ScanLedger Backend — Stock Summary SQLAlchemy Model
=====================================================

What:  ORM model for `stock_summaries`, the running on-hand quantity per
       barcode.
Who:   Adjusted by StockAdjuster after each recorded scan.

This table is a convenience view, not the system of record. It may drift
from the ledger when an adjustment fails; a reconciliation pass can rebuild
it from `scan_events` without touching history.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from scanledger.database import Base


class StockSummary(Base):
    """Net on-hand quantity for one barcode. Never negative."""

    __tablename__ = "stock_summaries"

    barcode: Mapped[str] = mapped_column(String(64), primary_key=True)
    on_hand: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<StockSummary(barcode='{self.barcode}', on_hand={self.on_hand})>"
