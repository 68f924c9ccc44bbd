"""
Field Signing Service - Main FastAPI Application
Places fields on PDF pages, embeds signer values and keeps a hash-chained
audit trail of every document mutation.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from fieldsign.config import get_settings
from fieldsign.errors import SigningError
from fieldsign.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    not_found_handler,
    signing_error_handler,
    validation_exception_handler,
)
from fieldsign.routers import documents, fields, health
from fieldsign.storage import NotFound
from fieldsign.utils.logging import RequestIdMiddleware, setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    logger.info(f"Starting Field Signing Service v1.0.0 ({settings.environment})")
    yield
    logger.info("Shutting down Field Signing Service")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Field Signing Service",
        description="""Backend service for placing and signing fields on PDF documents.

Positions are fractions of the page measured from the top-left corner.
Every mutation is recorded in a SHA-256 hash-chained audit trail.
""",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "documents", "description": "Upload, signing, download and audit"},
            {"name": "fields", "description": "Field placement and values"},
            {"name": "health", "description": "Health check endpoints"},
        ],
    )

    # Middleware
    app.add_middleware(RequestIdMiddleware)
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID", "Content-Disposition"],
        )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(SigningError, signing_error_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(documents.router)
    app.include_router(fields.router)

    return app


app = create_app()


# Run with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fieldsign.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=get_settings().debug,
    )
