"""
ScanLedger Backend — Scan Gate Unit Tests
===========================================

What:  Tests for the maintenance window, role matrix and barcode checks.
How:   ScanGate is pure, so these call admit() directly with chosen times.

What we test:
    ✅ Window bounds are inclusive to the second, in the warehouse timezone
    ✅ Maintenance wins over every other rejection
    ✅ Role matrix, including the IT override
    ✅ Empty and whitespace barcodes
    ✅ Decisions map to the right exceptions
"""

from datetime import datetime, time, timezone

import pytest

from scanledger.exceptions import (
    BarcodeRequiredError,
    InvalidPositionError,
    MaintenanceWindowError,
)
from scanledger.models.scan import Direction
from scanledger.services.scan_gate import ADMIT, ALLOWED_ROLES, RejectReason, ScanGate

from conftest import JAKARTA


def at(hour, minute, second=0, microsecond=0):
    return datetime(2024, 1, 15, hour, minute, second, microsecond, tzinfo=JAKARTA)


@pytest.fixture
def gate():
    return ScanGate(window_start=time(7, 30, 0), window_end=time(7, 30, 6), tz=JAKARTA)


class TestMaintenanceWindow:

    @pytest.mark.parametrize(
        "now",
        [at(7, 30, 0), at(7, 30, 3), at(7, 30, 6), at(7, 30, 6, 999999)],
    )
    def test_inside_window(self, gate, now):
        assert gate.in_maintenance_window(now)

    @pytest.mark.parametrize("now", [at(7, 29, 59, 999999), at(7, 30, 7), at(19, 30, 3)])
    def test_outside_window(self, gate, now):
        assert not gate.in_maintenance_window(now)

    def test_window_uses_warehouse_timezone(self, gate):
        """07:30:03 in Jakarta is 00:30:03 UTC."""
        assert gate.in_maintenance_window(datetime(2024, 1, 15, 0, 30, 3, tzinfo=timezone.utc))
        assert not gate.in_maintenance_window(datetime(2024, 1, 15, 7, 30, 3, tzinfo=timezone.utc))

    def test_retry_after_counts_to_end_of_window(self, gate):
        assert gate.seconds_until_window_ends(at(7, 30, 0)) == 7
        assert gate.seconds_until_window_ends(at(7, 30, 6)) == 1

    def test_maintenance_overrides_every_other_rejection(self, gate):
        decision = gate.admit(at(7, 30, 2), "SHIPPING", Direction.RECEIVING, "")

        assert decision.reason is RejectReason.SYSTEM_MAINTENANCE
        exc = decision.to_exception()
        assert isinstance(exc, MaintenanceWindowError)
        assert exc.retry_after == 5


class TestRoleMatrix:

    @pytest.mark.parametrize(
        "role,direction",
        [
            ("RECEIVING", Direction.RECEIVING),
            ("SHIPPING", Direction.SHIPPING),
            ("IT", Direction.RECEIVING),
            ("IT", Direction.SHIPPING),
        ],
    )
    def test_allowed(self, gate, role, direction):
        assert gate.admit(at(10, 0), role, direction, "ABC123") is ADMIT

    @pytest.mark.parametrize(
        "role,direction",
        [
            ("SHIPPING", Direction.RECEIVING),
            ("RECEIVING", Direction.SHIPPING),
            ("WAREHOUSE", Direction.RECEIVING),
            ("it", Direction.SHIPPING),
        ],
    )
    def test_rejected(self, gate, role, direction):
        decision = gate.admit(at(10, 0), role, direction, "ABC123")

        assert decision.reason is RejectReason.INVALID_POSITION
        exc = decision.to_exception()
        assert isinstance(exc, InvalidPositionError)
        assert exc.position == role
        assert "IT" in exc.allowed

    def test_every_direction_allows_override_role(self):
        assert all("IT" in roles for roles in ALLOWED_ROLES.values())

    def test_role_checked_before_barcode(self, gate):
        decision = gate.admit(at(10, 0), "SHIPPING", Direction.RECEIVING, "   ")
        assert decision.reason is RejectReason.INVALID_POSITION


class TestBarcodeRequired:

    @pytest.mark.parametrize("barcode", [None, "", "   ", "\t"])
    def test_blank_barcode_rejected(self, gate, barcode):
        decision = gate.admit(at(10, 0), "RECEIVING", Direction.RECEIVING, barcode)

        assert decision.reason is RejectReason.BARCODE_REQUIRED
        assert isinstance(decision.to_exception(), BarcodeRequiredError)

    def test_admitted_decision_has_no_exception(self):
        with pytest.raises(ValueError):
            ADMIT.to_exception()
