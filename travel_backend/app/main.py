"""
FastAPI Application Entry Point.

This is the main application file for the Travel Expense Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from travel_backend.app.core.config import settings
from travel_backend.app.api.v1.router import router as api_v1_router
from travel_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from travel_backend.app.db.session import engine, Base
from travel_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from travel_backend.app.models.user import User
from travel_backend.app.models.trip import Trip
from travel_backend.app.models.advance import Advance
from travel_backend.app.models.receipt import Receipt
from travel_backend.app.models.settlement import Settlement
from travel_backend.app.models.status_history import TripStatusHistory, AdvanceStatusHistory
from travel_backend.app.models.notification import Notification
from travel_backend.app.models.sequence_counter import SequenceCounter

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Disposes the connection pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Business-trip expense workflow: trips, advances, receipts and settlements",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Travel Expense Backend API",
        "docs": "/docs",
        "health": "/health",
    }
