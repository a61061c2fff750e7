"""
ScanLedger Backend — Middleware Package
=========================================

Request → [Request ID] → [Logging] → [GZip] → [CORS] → route handler

The request id is set first so the access log line (written on the way
back out) carries it.
"""
