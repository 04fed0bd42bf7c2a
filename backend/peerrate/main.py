"""
PeerRate Backend - FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers; the
       lifespan builds the long-lived clients and services on app.state.
Who:   uvicorn (uvicorn peerrate.main:app) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware: Request ID → Access Log → GZip → CORS      │
    │                                                         │
    │  Routes:                                                │
    │    /api/users/*   /api/reviews/*   /api/files/*  /health│
    │                                                         │
    │  app.state (built in lifespan):                         │
    │    redis ─────────▶ RatingCache ──▶ review_service      │
    │    object_storage ─┐                                    │
    │    social_client ──┴──────────────▶ user_service        │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → Redis client → storage backend →
              social client → services
    Shutdown: close Redis → close social client → dispose DB engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from peerrate import __version__
from peerrate.config import settings
from peerrate.database import dispose_engine
from peerrate.exceptions import (
    AuthenticationError,
    CacheError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    NotFoundError,
    PeerRateError,
    StorageError,
    ValidationError,
)
from peerrate.middleware.logging import RequestLoggingMiddleware
from peerrate.middleware.request_id import RequestIDMiddleware, request_id_var
from peerrate.routes import files, health, reviews, users
from peerrate.services.rating_cache import RatingCache
from peerrate.services.review_service import ReviewService
from peerrate.services.social_service import SocialProfileClient
from peerrate.services.storage_service import build_object_storage
from peerrate.services.user_service import UserService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: 2025-01-15T12:00:00 [INFO] peerrate.services.review_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-call DEBUG/INFO chatter from client libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("PeerRate Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports the broken dependency
        logger.error("Configuration error: %s", str(e))

    app.state.redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    app.state.object_storage = build_object_storage()
    app.state.social_client = SocialProfileClient()

    app.state.review_service = ReviewService(cache=RatingCache(app.state.redis))
    app.state.user_service = UserService(
        storage=app.state.object_storage,
        social_client=app.state.social_client,
    )

    logger.info("Storage backend: %s", settings.storage_backend)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("PeerRate Backend shutting down...")
    await app.state.redis.aclose()
    await app.state.social_client.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

    Handler table:
        ValidationError       → 400  (context returned as details)
        AuthenticationError   → 401
        NotFoundError         → 404
        ConflictError         → 409
        StorageError          → 500  (generic message, context logged)
        DatabaseError         → 500  (generic message, context logged)
        CacheError            → 500
        ExternalServiceError  → 503
        PeerRateError         → 500  (any other subclass)
        Exception             → 500  (stack trace logged only)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(401, "unauthorized", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message, exc.context)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(
            "[%s] Storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(CacheError)
    async def handle_cache_error(request: Request, exc: CacheError):
        logger.error(
            "[%s] Cache error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(ExternalServiceError)
    async def handle_external_service_error(request: Request, exc: ExternalServiceError):
        logger.error(
            "[%s] External service error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(503, "service_unavailable", exc.message)

    @app.exception_handler(PeerRateError)
    async def handle_application_error(request: Request, exc: PeerRateError):
        logger.error("[%s] Application error: %s", request_id_var.get(""), exc.message)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="PeerRate API",
        description=(
            "Professional profiles with peer reviews: rate colleagues on "
            "professionalism, reliability and communication."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────────
    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(users.router)
    app.include_router(reviews.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


app = create_app()
