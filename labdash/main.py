"""
FastAPI application entry point for the laboratory dashboard API.

This module configures logging, CORS, the error-to-JSON translation and the
API routers, and starts the ASGI server when run directly.

Error Translation:
    Services raise DashboardError subclasses and never build HTTP responses.
    The handlers registered here turn them into
    {success: false, error, message, timestamp} with the class's status code.
    Query error details are included only in development. Request validation
    failures are reported as 400, and unexpected exceptions as a generic 500
    without exception text.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labdash import __version__
from labdash.api import api_router
from labdash.core.config import get_settings
from labdash.core.database import init_db, close_db
from labdash.core.errors import DashboardError, InvalidWindow
from labdash.services.shaping import error_payload

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Initialize the connection pool
    On shutdown:
        - Close the connection pool
    """
    # Startup
    logger.info("Laboratory Dashboard API starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        # Requests retry pool creation lazily and report 500 until it succeeds
        logger.error(f"Failed to initialize database: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Laboratory Dashboard API shutting down")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


# Create FastAPI application
app = FastAPI(
    title="Laboratory Dashboard API",
    version=__version__,
    description=(
        "Read-only reporting backend for the newborn-screening laboratory. "
        "Provides unsatisfactory-sample rankings, rates and province "
        "comparisons, monthly and cumulative sample counts, and summary totals."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    include_detail = get_settings().is_development
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc.public_message(True)}",
            exc_info=exc,
        )
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc, include_detail),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "query")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    invalid = InvalidWindow("; ".join(messages) or "Invalid request parameters")
    return JSONResponse(
        status_code=invalid.status_code,
        content=error_payload(invalid, include_detail=False),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} raised an unexpected error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=error_payload(exc, include_detail=False),
    )


# Register API routers
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Laboratory Dashboard API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "labdash.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
