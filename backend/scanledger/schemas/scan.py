"""
ScanLedger Backend — Pydantic Request/Response Schemas
========================================================

What:  The API contract for scan submission, scan history, the live feed and
       error bodies.
How:   FastAPI validates request bodies against these models, serializes
       responses through them and generates the OpenAPI document from them.

Schemas are separate from the ORM models: ledger rows carry fields
(scan_date, description, four_digit, ...) the scan response does not expose.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Actor
# ══════════════════════════════════════════════════════════════════════════


class ActorContext(BaseModel):
    """
    The verified identity driving a request, decoded from the bearer token.

    `role` is the staff position (RECEIVING, SHIPPING, IT, MANAGEMENT, ...).
    """
    username: str
    role: str
    description: str = ""


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ScanRequest(BaseModel):
    """
    Body of POST /api/{receiving,shipping}/scan.

    `barcode` is optional at the schema level so that an empty submission
    reaches the scan gate and is rejected there as BARCODE_REQUIRED (400)
    instead of as a generic 422.
    """
    barcode: Optional[str] = Field(
        default=None,
        description="Scanned barcode; surrounding whitespace is ignored",
        examples=["ABC123"],
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ScanResponse(BaseModel):
    """Returned with HTTP 201 once the scan row has committed."""
    sequence_number: int = Field(description="Position in today's stream for this direction")
    barcode: str
    model: str
    color: str
    size: str
    quantity: int
    timestamp: datetime = Field(description="Server time the scan was recorded")
    username: str


class ScanHistoryItem(BaseModel):
    """A ledger row as listed by the history and today endpoints."""
    sequence_number: int
    barcode: str
    brand: str
    model: str
    model_code: str
    color: str
    size: str
    four_digit: str
    unit: str
    quantity: int
    production: str
    item: str
    username: str
    description: str
    scanned_at: datetime

    model_config = {"from_attributes": True}


class ScanHistoryResponse(BaseModel):
    """GET /api/{direction}/history: the caller's most recent scans."""
    data: List[ScanHistoryItem]


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TodayScansResponse(BaseModel):
    """GET /api/{direction}/today: every scan in today's stream, paginated."""
    data: List[ScanHistoryItem]
    pagination: PaginationInfo


class DashboardEvent(BaseModel):
    """
    Message pushed to live dashboard subscribers after a scan records.

    `type` is the direction (RECEIVING or SHIPPING).
    """
    type: str
    barcode: str
    model: str
    color: str
    size: str
    quantity: int
    username: str
    sequence_number: int
    timestamp: datetime


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Error body shared by every endpoint.

    Example:
        {
            "error_code": "BARCODE_NOT_FOUND",
            "message": "Barcode 'ZZZZZZ' is not registered in the master catalog",
            "request_id": "1f3a9c0d"
        }
    """
    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """GET /health: service and dependency status."""
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    dashboard_subscribers: int = Field(description="Live feed connections on this instance")
    uptime_seconds: float
