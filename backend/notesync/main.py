"""
NoteSync Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application.
How:   `create_app(container=None)` assembles middleware, exception handlers
       and routers around an AppContainer. uvicorn serves the module-level
       `app` (uvicorn notesync.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                          FastAPI App                         │
    │                                                              │
    │  Middleware:  Rate Limit → Request ID → Access Log → GZip/CORS│
    │                                                              │
    │  Routers:     /api/categories   /api/notes   /api/activity   │
    │               /api/notes/from-pdf, /summarize, /quiz         │
    │               /health                                        │
    │                                                              │
    │  Handlers:    NoteSyncError → its status_code / error_code   │
    │               RequestValidationError → 400                   │
    │               Exception → 500 (details logged, never sent)   │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   configure logging, validate settings, open the database
    Shutdown:  close the database (dispose the pool)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notesync import __version__
from notesync.config import settings
from notesync.dependencies import AppContainer, build_container
from notesync.exceptions import ExternalServiceError, NoteSyncError, RateLimitExceededError
from notesync.middleware.logging import RequestLoggingMiddleware
from notesync.middleware.rate_limit import RateLimitMiddleware
from notesync.middleware.request_id import RequestIDMiddleware, request_id_var
from notesync.routes import activity, categories, generation, health, notes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once, to stdout (Docker captures it)."""
    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    container: AppContainer = app.state.container
    config = container.settings

    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("NoteSync Backend %s starting up...", __version__)

    try:
        config.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports the degraded provider
        logger.error("Configuration error: %s", str(e))

    await container.database.open()
    logger.info("Generation strategy: %s", container.strategy.name)
    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("NoteSync Backend shutting down...")
    await container.database.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════


def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details or None,
        "request_id": request_id_var.get("") or None,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Every NoteSyncError carries its own `status_code` and `error_code`, so a
    single handler renders them all. Internal errors keep their context in the
    log and out of the response.
    """

    @app.exception_handler(NoteSyncError)
    async def handle_notesync_error(request: Request, exc: NoteSyncError):
        rid = request_id_var.get("")
        headers = {}

        if exc.status_code >= 500 and not isinstance(exc, ExternalServiceError):
            logger.error("[%s] %s: %s | Context: %s", rid, exc.error_code, exc.message, exc.context)
            details = None
            # Partial cascade failures report what already happened
            for key in ("notes_updated", "notes_deleted"):
                if key in exc.context:
                    details = {**(details or {}), key: exc.context[key]}
            body = _error_body(exc.error_code, exc.message, details)
        else:
            log = logger.error if exc.status_code >= 500 else logger.warning
            log("[%s] %s: %s", rid, exc.error_code, exc.message)
            body = _error_body(exc.error_code, exc.message, exc.context)

        retry_after = getattr(exc, "retry_after", None)
        if isinstance(exc, (RateLimitExceededError, ExternalServiceError)) and retry_after:
            headers["Retry-After"] = str(retry_after)

        return JSONResponse(status_code=exc.status_code, content=body, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        # Malformed ids / bodies get the same 400 shape as domain validation
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), errors)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "validation_error",
                first.get("msg", "Invalid request"),
                {"field": field} if field else None,
            ),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    container = container or build_container(settings)
    config = container.settings

    app = FastAPI(
        title="NoteSync API",
        description=(
            "Notes and categories with cascading consistency rules, plus "
            "Gemini-powered PDF import, summaries and quiz generation."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.container = container

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        limit=config.rate_limit_requests,
        window=config.rate_limit_window,
    )

    register_exception_handlers(app)

    app.include_router(categories.router)
    app.include_router(generation.router)
    app.include_router(notes.router)
    app.include_router(activity.router)
    app.include_router(health.router)

    return app


app = create_app()
