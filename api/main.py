"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health
from api.routes.v1 import applications, notes
from core.config import settings
from core.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)
from database.engine import close_db, init_db

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await close_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Application lifecycle and recruiter assignment engine",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Setup error handlers (before middleware)
    setup_error_handlers(app, debug=settings.debug)

    # Middleware executes in reverse order of registration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware, identity_header=settings.identity_header)
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API v1 routes
    app.include_router(
        applications.router,
        prefix=f"{settings.api_v1_prefix}/applications",
        tags=["Applications"],
    )
    app.include_router(
        applications.recruiter_router,
        prefix=f"{settings.api_v1_prefix}/recruiters",
        tags=["Applications"],
    )
    app.include_router(
        notes.router,
        prefix=settings.api_v1_prefix,
        tags=["Notes"],
    )
    return app


app = create_app()
