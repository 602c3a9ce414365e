"""
Entry point of the CA firm practice-management API.

Configures the FastAPI application with its routes, middleware,
exception handlers and lifecycle events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cafirm.api.v1.router import api_router
from cafirm.core.config import settings
from cafirm.core.logging import setup_logging
from cafirm.core.middleware import RequestContextMiddleware, setup_exception_handlers
from cafirm.realtime.sse import broadcaster

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle."""
    # Startup
    setup_logging()
    broadcaster.start_heartbeat()
    logger.info(
        "Starting CA Firm API",
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
    )

    yield

    # Shutdown
    await broadcaster.stop_heartbeat()
    logger.info("Stopping CA Firm API")


def create_application() -> FastAPI:
    """Factory for the FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Practice management for chartered accountancy firms",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    setup_exception_handlers(app)

    # Routes
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Liveness check outside the versioned prefix."""
    return {"status": "healthy", "version": settings.VERSION}
