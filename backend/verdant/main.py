"""
Verdant Backend: FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   uvicorn (`uvicorn verdant.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Rate Limit → Request ID → Logging → GZip   │
    │                                                          │
    │  Routes:                                                 │
    │   /api/plants/{id}/care-logs   /api/plants[/{id}]        │
    │   /api/plants/{id}/reminders   /api/dashboard/care-needed│
    │   /api/files/{path}            /health                   │
    │                                                          │
    │  app.state.ai_service: shared GeminiService              │
    │  (vision + language capabilities, one circuit breaker)   │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration report → storage directory
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from verdant import __version__
from verdant.config import settings
from verdant.database import dispose_engine
from verdant.exceptions import (
    AccessError,
    AIServiceError,
    AuthenticationError,
    CircuitBreakerOpenError,
    DatabaseError,
    FileStorageError,
    NotFoundError,
    PhotoProcessingError,
    RateLimitExceededError,
    ValidationError,
    VerdantError,
)
from verdant.middleware.logging import RequestLoggingMiddleware
from verdant.middleware.rate_limit import RateLimitMiddleware
from verdant.middleware.request_id import RequestIDMiddleware, request_id_var
from verdant.routes import care_logs, dashboard, files, health, plants
from verdant.services.gemini_service import GeminiService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging once for the whole process.

    Format: 2024-05-14T08:30:00 [INFO] verdant.services.enrichment: message
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    for name in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "PIL"):
        logging.getLogger(name).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Verdant Backend %s starting up...", __version__)

    # A missing AI key only disables enrichment; keep serving
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.warning("Configuration warning: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info("AI capability: %s", app.state.ai_service.status)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Verdant Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps the VerdantError hierarchy onto HTTP responses.

    Handler hierarchy:
        ValidationError         → 400
        AuthenticationError     → 401
        AccessError             → 404 (missing and foreign plants look alike)
        NotFoundError           → 404
        RateLimitExceededError  → 429
        PhotoProcessingError    → 500
        FileStorageError        → 500
        DatabaseError           → 500
        AIServiceError          → 503
        CircuitBreakerOpenError → 503
        VerdantError (base)     → 500
        Exception (fallback)    → 500

    `context` is logged server-side and only returned for 400/429, where it
    helps the client fix the request.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(401, "unauthorized", exc.message)

    @app.exception_handler(AccessError)
    async def handle_access_error(request: Request, exc: AccessError):
        # The reason (missing / foreign_owner) stays in the logs
        logger.info(
            "[%s] Plant access denied: %s",
            request_id_var.get(""),
            exc.context.get("reason"),
        )
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429,
            "rate_limit_exceeded",
            exc.message,
            details=exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(PhotoProcessingError)
    async def handle_photo_error(request: Request, exc: PhotoProcessingError):
        logger.error(
            "[%s] Photo processing failed | Context: %s",
            request_id_var.get(""),
            exc.context,
        )
        return _error_response(500, "photo_processing_error", exc.message)

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error(
            "[%s] File storage error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            details={"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(AIServiceError)
    async def handle_ai_error(request: Request, exc: AIServiceError):
        logger.error("[%s] AI service error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(503, "ai_service_error", exc.message, headers=headers)

    @app.exception_handler(VerdantError)
    async def handle_verdant_error(request: Request, exc: VerdantError):
        logger.error(
            "[%s] Unhandled application error %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(ai_service: Optional[GeminiService] = None) -> FastAPI:
    """
    Assemble middleware, handlers, routes and shared services.

    Args:
        ai_service: Override for the AI capability object (tests pass a
            fake); defaults to a GeminiService built from settings.
    """
    app = FastAPI(
        title="Verdant API",
        description=(
            "Plant care tracking: record care events, keep reminders, derive "
            "plant status, and enrich care photos with AI in the background."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.ai_service = ai_service or GeminiService()

    # Middleware executes in REVERSE order of addition (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(care_logs.router)
    app.include_router(plants.router)
    app.include_router(dashboard.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


app = create_app()
