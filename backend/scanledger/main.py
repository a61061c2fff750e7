"""
ScanLedger Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn scanledger.main:app).

Application Architecture:
    ┌───────────────────────────────────────────────────────┐
    │                     FastAPI App                       │
    │                                                       │
    │  Middleware:  Request ID → Logging → GZip → CORS      │
    │                                                       │
    │  Routes:                                              │
    │   /api/receiving/{scan,history,today}                 │
    │   /api/shipping/{scan,history,today}                  │
    │   /ws/dashboard            /health                    │
    │                                                       │
    │  Exception Handlers:                                  │
    │   400 BARCODE_REQUIRED   401 auth   403 INVALID_POSITION
    │   404 BARCODE_NOT_FOUND  503 SYSTEM_MAINTENANCE       │
    │   500 SCAN_FAILED / SERVER_ERROR / INTERNAL_SERVER_ERROR
    └───────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration check → ready
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from scanledger import __version__
from scanledger.config import settings
from scanledger.database import dispose_engine
from scanledger.exceptions import (
    AuthenticationError,
    BarcodeNotFoundError,
    BarcodeRequiredError,
    DatabaseError,
    InvalidPositionError,
    MaintenanceWindowError,
    ScanFailedError,
    ScanLedgerError,
)
from scanledger.middleware.logging import RequestLoggingMiddleware
from scanledger.middleware.request_id import RequestIDMiddleware, request_id_var
from scanledger.routes import dashboard, health
from scanledger.routes.scans import receiving_router, shipping_router

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: 2024-01-15T07:31:02 [INFO] scanledger.services.recorder: Recorded ...
    Called once at startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: logging and configuration checks. Shutdown: close the pool."""
    setup_logging()
    logger.info("=" * 60)
    logger.info("ScanLedger Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and error responses still work
        logger.error("Configuration error: %s", str(e))

    logger.info(
        "Warehouse timezone %s, maintenance window %s-%s, %d scan attempts",
        settings.warehouse_timezone,
        settings.maintenance_window_start.isoformat(),
        settings.maintenance_window_end.isoformat(),
        settings.scan_max_attempts,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("ScanLedger Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    exc: ScanLedgerError,
    message: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": exc.error_code,
            "message": message or exc.message,
            "request_id": request_id_var.get(""),
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

    Client-side rejections log at WARNING, an unknown barcode at INFO, and
    server failures at ERROR with their context. Context never reaches the
    response body.
    """

    @app.exception_handler(BarcodeRequiredError)
    async def handle_barcode_required(request: Request, exc: BarcodeRequiredError):
        logger.warning("[%s] %s", request_id_var.get(""), exc.message)
        return _error_response(400, exc)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication(request: Request, exc: AuthenticationError):
        logger.warning("[%s] Authentication failed: %s", request_id_var.get(""), exc.message)
        return _error_response(401, exc, headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(InvalidPositionError)
    async def handle_invalid_position(request: Request, exc: InvalidPositionError):
        logger.warning("[%s] %s", request_id_var.get(""), exc.message)
        return _error_response(403, exc)

    @app.exception_handler(BarcodeNotFoundError)
    async def handle_barcode_not_found(request: Request, exc: BarcodeNotFoundError):
        logger.info("[%s] %s", request_id_var.get(""), exc.message)
        return _error_response(404, exc)

    @app.exception_handler(MaintenanceWindowError)
    async def handle_maintenance(request: Request, exc: MaintenanceWindowError):
        logger.warning("[%s] Scan refused during maintenance window", request_id_var.get(""))
        return _error_response(503, exc, headers={"Retry-After": str(exc.retry_after)})

    @app.exception_handler(ScanFailedError)
    async def handle_scan_failed(request: Request, exc: ScanFailedError):
        logger.error("[%s] Scan failed: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, exc)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(
            500, exc, message="An internal error occurred. Please try again later."
        )

    @app.exception_handler(ScanLedgerError)
    async def handle_application_error(request: Request, exc: ScanLedgerError):
        logger.error("[%s] Unhandled application error %s: %s", request_id_var.get(""), exc.error_code, exc.message)
        return _error_response(500, exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error_code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers into a new app."""
    app = FastAPI(
        title="ScanLedger API",
        description=(
            "Warehouse receiving and shipping scan ledger. Scans are resolved "
            "against the master catalog and numbered per day and direction."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(receiving_router)
    app.include_router(shipping_router)
    app.include_router(dashboard.router)
    app.include_router(health.router)

    return app


app = create_app()
