"""
Custodian Application Factory
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from custodian.core.config import settings
from custodian.core.database import init_db
from custodian.core.errors import CustodianError
from custodian.core.logging import configure_logging
from custodian.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description="IT asset assignment, tagging and audit service",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json" if settings.DEBUG else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CustodianError)
    async def custodian_error_handler(request: Request, exc: CustodianError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=exc.message, error=exc.kind).model_dump(),
        )

    # Import routers here to avoid circular imports
    from custodian.api import api_router

    app.include_router(api_router, prefix="/api/v1")

    # Startup event
    @app.on_event("startup")
    async def startup_event():
        """Create missing tables"""
        await init_db()

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": settings.APP_NAME}

    return app
