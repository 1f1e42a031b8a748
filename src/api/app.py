# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the LearnLedger API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from src.api.dependencies import close_db, init_db
from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.cpe_compliance import (
    CpeComplianceBlockedError,
    cpe_compliance_blocked_handler,
)
from src.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import get_settings
from src.domains.cpe.recorder import CertificateIssuanceError
from src.infrastructure.database.connection import DatabaseError
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE_DETAIL = "Service temporarily unavailable"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events for the application.
    Initializes and cleans up:
    - Logging
    - Database connections

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting LearnLedger API: environment=%s, debug=%s",
        settings.environment,
        settings.debug,
    )

    # =========================================================================
    # Startup
    # =========================================================================

    try:
        await init_db()
        logger.info("Database connections initialized")
    except DatabaseError as e:
        # /ready reports the outage; the process stays up for /health
        logger.warning("Failed to initialize database connections: %s", str(e))

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    try:
        await close_db()
        logger.info("Database connections closed")
    except SQLAlchemyError as e:
        logger.warning("Error closing database connections: %s", str(e))

    logger.info("Shutting down LearnLedger API")


async def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Turn infrastructure failures into 503 responses.

    Args:
        request: HTTP request.
        exc: DatabaseError, SQLAlchemyError or CertificateIssuanceError.

    Returns:
        503 JSON response without internal details.
    """
    logger.error(
        "Request failed on infrastructure error: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": SERVICE_UNAVAILABLE_DETAIL},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a new FastAPI instance with all
    middleware, routes, and configurations applied.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="LearnLedger API",
        description="CPE compliance service: credits, assessment gating and certificates",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Disable automatic redirects from /path to /path/
        # This prevents 307 redirects that lose Authorization headers
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.limiter = limiter

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(CpeComplianceBlockedError, cpe_compliance_blocked_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(CertificateIssuanceError, database_error_handler)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # Auth middleware - validates JWT tokens
    app.add_middleware(AuthMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
