"""
ScanLedger Backend — API Routes Package
=========================================

Route Inventory:
    - scans.py:      POST /api/{receiving,shipping}/scan
                     GET  /api/{receiving,shipping}/history
                     GET  /api/{receiving,shipping}/today
    - dashboard.py:  WS   /ws/dashboard
    - health.py:     GET  /health

Routes stay thin: authenticate, call ScanService, shape the response.
Rejections travel as exceptions to the handlers registered in main.py.
"""
