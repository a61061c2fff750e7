"""
ScanLedger Backend — Custom Exception Hierarchy
=================================================

What:  Application exceptions for every scan rejection and failure mode.
How:   Each exception carries a user-facing `message`, a machine-readable
       `error_code` and a `context` dict. Global handlers in main.py turn them
       into `{error_code, message, request_id}` JSON with the matching status.
       `context` is logged server-side and never returned to the client.
Who:   Raised by the scan workflow, the auth dependency and the routes.

Exception Hierarchy:
    ScanLedgerError (base)
    ├── BarcodeRequiredError     → 400 BARCODE_REQUIRED
    ├── AuthenticationError      → 401 AUTHENTICATION_REQUIRED | INVALID_TOKEN
    ├── InvalidPositionError     → 403 INVALID_POSITION
    ├── BarcodeNotFoundError     → 404 BARCODE_NOT_FOUND
    ├── MaintenanceWindowError   → 503 SYSTEM_MAINTENANCE
    ├── SequenceConflictError    (internal, retried, never reaches a handler)
    ├── ScanFailedError          → 500 SCAN_FAILED
    └── DatabaseError            → 500 SERVER_ERROR
"""

from typing import Any, Dict, Optional


class ScanLedgerError(Exception):
    """
    Base exception for all ScanLedger application errors.

    Attributes:
        message:     User-facing error description (safe to return)
        error_code:  Stable machine-readable code clients switch on
        context:     Debug info (logged, NOT returned to client)
    """

    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.context = context or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)


class BarcodeRequiredError(ScanLedgerError):
    """
    The scan request carried an empty or whitespace-only barcode.

    HTTP: 400. Raised before any database round trip.
    """

    error_code = "BARCODE_REQUIRED"

    def __init__(
        self,
        message: str = "Barcode is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthenticationError(ScanLedgerError):
    """
    The bearer token is missing, malformed, expired or fails verification.

    HTTP: 401. Raised by the auth dependency before the scan workflow runs.
    """

    error_code = "AUTHENTICATION_REQUIRED"

    def __init__(
        self,
        message: str = "A valid bearer token is required",
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context, error_code=error_code)


class InvalidPositionError(ScanLedgerError):
    """
    The actor's position is not allowed to scan in this direction.

    HTTP: 403. The user must rescan through a station staffed by an allowed
    role; the request is never retried automatically.
    """

    error_code = "INVALID_POSITION"

    def __init__(
        self,
        position: str,
        allowed: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        allowed = allowed or []
        message = f"Position '{position}' may not perform this scan"
        if allowed:
            message += f"; allowed positions: {', '.join(allowed)}"
        ctx = context or {}
        ctx.update({"position": position, "allowed": allowed})
        super().__init__(message=message, context=ctx)
        self.position = position
        self.allowed = allowed


class BarcodeNotFoundError(ScanLedgerError):
    """
    The scanned barcode has no master catalog entry.

    HTTP: 404. This is the everyday failure (mis-scan, unregistered label),
    handled as an expected outcome and logged below error severity.
    """

    error_code = "BARCODE_NOT_FOUND"

    def __init__(
        self,
        barcode: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["barcode"] = barcode
        super().__init__(
            message=f"Barcode '{barcode}' is not registered in the master catalog",
            context=ctx,
        )
        self.barcode = barcode


class MaintenanceWindowError(ScanLedgerError):
    """
    The scan arrived inside the daily maintenance window.

    HTTP: 503 with a Retry-After header. Checked before every other rule.
    """

    error_code = "SYSTEM_MAINTENANCE"

    def __init__(
        self,
        retry_after: int = 1,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(
            message=(
                "Scanning is paused while the scheduled data migration runs. "
                f"Please scan again in {retry_after} seconds."
            ),
            context=ctx,
        )
        self.retry_after = retry_after


class SequenceConflictError(ScanLedgerError):
    """
    Another writer committed the same (direction, day, sequence_number).

    Internal only: the recorder retries allocation and insert. Exhausting the
    retries turns this into ScanFailedError.
    """

    error_code = "SEQUENCE_CONFLICT"

    def __init__(
        self,
        direction: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["direction"] = direction
        super().__init__(message="Sequence number collision", context=ctx)


class ScanFailedError(ScanLedgerError):
    """
    The scan could not be recorded after every allowed attempt.

    HTTP: 500. No ledger row exists for the attempt.
    """

    error_code = "SCAN_FAILED"

    def __init__(
        self,
        message: str = "The scan could not be recorded. Please scan again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(ScanLedgerError):
    """
    A database operation failed unexpectedly.

    HTTP: 500. The client always gets a generic message; query text and
    driver errors stay in the server log.
    """

    error_code = "SERVER_ERROR"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
