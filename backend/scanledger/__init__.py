"""
ScanLedger Backend — Application Package
=========================================

What: Warehouse receiving/shipping scan backend.
Who:  Imported by uvicorn (scanledger.main:app), Alembic and pytest.

Layering:

    ┌─────────────────────────────────────┐
    │   Routes (HTTP + WebSocket)         │  ← status codes, auth dependency
    ├─────────────────────────────────────┤
    │   ScanService (workflow)            │  ← gate → resolve → record → adjust → notify
    ├─────────────────────────────────────┤
    │   Models & Schemas                  │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database                          │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘

The scan ledger is the system of record. Everything that happens after a scan
row commits (stock summary, dashboard feed) is advisory.
"""

__version__ = "1.0.0"
