"""
ScanLedger Backend — Services Layer
=====================================

Service Inventory:
    - ScanGate:          maintenance window and role checks (pure, no I/O)
    - CatalogResolver:   barcode → master catalog entry
    - SequenceAllocator: next per-day, per-direction sequence number
    - ScanRecorder:      atomic ledger insert with conflict retry
    - StockAdjuster:     best-effort on-hand update after a recorded scan
    - DashboardNotifier: in-process fan-out to dashboard subscribers
    - ScanService:       orchestrates the above for one scan request

Only the gate, resolver and recorder can fail a scan. Stock and notifier
failures are logged and swallowed once the ledger row is committed.
"""
