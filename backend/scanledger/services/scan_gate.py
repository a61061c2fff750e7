"""
ScanLedger Backend — Scan Gate
================================

What:  Decides whether a scan attempt may proceed right now.
How:   A pure function of (current time, actor role, direction, barcode).
       No I/O and no side effects, so it runs before any database work.
Who:   Called first by ScanService.scan().

Rules, in evaluation order (first failure wins):
    1. SYSTEM_MAINTENANCE  now falls inside the daily maintenance window
    2. INVALID_POSITION    the actor's role is not allowed for the direction
    3. BARCODE_REQUIRED    the barcode is empty or whitespace

Role Matrix:
    ALLOWED_ROLES is the one place that says who may scan which way. IT is the
    universal override and appears in every row.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo
from typing import Dict, FrozenSet, Mapping, Optional

from scanledger.config import settings
from scanledger.exceptions import (
    BarcodeRequiredError,
    InvalidPositionError,
    MaintenanceWindowError,
    ScanLedgerError,
)
from scanledger.models.scan import Direction

OVERRIDE_ROLE = "IT"

ALLOWED_ROLES: Dict[Direction, FrozenSet[str]] = {
    Direction.RECEIVING: frozenset({"RECEIVING", OVERRIDE_ROLE}),
    Direction.SHIPPING: frozenset({"SHIPPING", OVERRIDE_ROLE}),
}


class RejectReason(str, enum.Enum):
    SYSTEM_MAINTENANCE = "SYSTEM_MAINTENANCE"
    INVALID_POSITION = "INVALID_POSITION"
    BARCODE_REQUIRED = "BARCODE_REQUIRED"


@dataclass(frozen=True)
class GateDecision:
    """
    Outcome of ScanGate.admit().

    `admitted` is True only when `reason` is None. `details` carries what the
    matching exception needs (allowed roles, retry delay).
    """
    reason: Optional[RejectReason] = None
    details: Mapping[str, object] = field(default_factory=dict)

    @property
    def admitted(self) -> bool:
        return self.reason is None

    def to_exception(self) -> ScanLedgerError:
        """The application exception that reports this rejection."""
        if self.reason is RejectReason.SYSTEM_MAINTENANCE:
            return MaintenanceWindowError(retry_after=int(self.details.get("retry_after", 1)))
        if self.reason is RejectReason.INVALID_POSITION:
            return InvalidPositionError(
                position=str(self.details.get("role", "")),
                allowed=sorted(self.details.get("allowed", ())),
            )
        if self.reason is RejectReason.BARCODE_REQUIRED:
            return BarcodeRequiredError()
        raise ValueError("an admitted decision has no exception")


ADMIT = GateDecision()


class ScanGate:
    """
    Maintenance-window and role gate shared by both scan directions.

    Args:
        window_start / window_end: inclusive wall-clock bounds of the daily
            maintenance window, in the warehouse timezone
        tz: warehouse timezone; naive `now` values are taken to be in it
        allowed_roles: direction → roles permitted to scan that way
    """

    def __init__(
        self,
        window_start: time,
        window_end: time,
        tz: tzinfo,
        allowed_roles: Mapping[Direction, FrozenSet[str]] = ALLOWED_ROLES,
    ):
        self.window_start = window_start
        self.window_end = window_end
        self.tz = tz
        self.allowed_roles = allowed_roles

    def _local(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def in_maintenance_window(self, now: datetime) -> bool:
        wall = self._local(now).time().replace(microsecond=0)
        return self.window_start <= wall <= self.window_end

    def seconds_until_window_ends(self, now: datetime) -> int:
        """Whole seconds until the first instant after the window, at least 1."""
        local = self._local(now)
        end = datetime.combine(local.date(), self.window_end, tzinfo=local.tzinfo)
        remaining = (end + timedelta(seconds=1) - local).total_seconds()
        return max(1, int(remaining + 0.999))

    def admit(
        self,
        now: datetime,
        actor_role: str,
        direction: Direction,
        barcode: Optional[str],
    ) -> GateDecision:
        """
        Evaluate every gate rule for one scan attempt.

        Returns ADMIT or a rejected GateDecision. Never raises.
        """
        if self.in_maintenance_window(now):
            return GateDecision(
                reason=RejectReason.SYSTEM_MAINTENANCE,
                details={"retry_after": self.seconds_until_window_ends(now)},
            )

        allowed = self.allowed_roles.get(direction, frozenset())
        if actor_role not in allowed:
            return GateDecision(
                reason=RejectReason.INVALID_POSITION,
                details={"role": actor_role, "allowed": allowed},
            )

        if not barcode or not barcode.strip():
            return GateDecision(reason=RejectReason.BARCODE_REQUIRED)

        return ADMIT


def build_scan_gate() -> ScanGate:
    """A gate configured from application settings."""
    return ScanGate(
        window_start=settings.maintenance_window_start,
        window_end=settings.maintenance_window_end,
        tz=settings.tzinfo,
    )
