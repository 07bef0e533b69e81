"""
FastAPI API Service Entry Point
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.routes import admin, clients
from scheduling.errors import (
    AppointmentNotFoundError,
    AppointmentValidationError,
    PersistenceFailure,
    RateSettingsError,
)
from shared.config import get_settings
from shared.logging_config import configure_logging

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Aircon Booking API",
    version="1.0.0",
)

# Load settings for CORS configuration
settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include admin panel router
app.include_router(admin.router)

# Include client portal router
app.include_router(clients.router)


# Exception handler for validation errors
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": exc.errors(include_url=False, include_context=False)},
    )


@app.exception_handler(AppointmentValidationError)
async def appointment_validation_handler(request: Request, exc: AppointmentValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Validation error", "details": str(exc)})


@app.exception_handler(AppointmentNotFoundError)
async def not_found_handler(request: Request, exc: AppointmentNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Not found", "details": str(exc)})


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    """Return 503 when the database is unavailable or rejects a write."""
    logger.error(f"Persistence failure: {exc}", extra={"request_path": request.url.path})
    return JSONResponse(status_code=503, content={"error": "Persistence failure", "details": str(exc)})


@app.exception_handler(RateSettingsError)
async def rate_settings_handler(request: Request, exc: RateSettingsError) -> JSONResponse:
    """Return 500 when pricing settings are missing or malformed."""
    logger.error(f"Rate settings error: {exc}", extra={"request_path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Rate settings error", "details": str(exc)})


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Checks:
    - PostgreSQL connectivity (SELECT 1 query)

    Returns:
        200 OK if all systems healthy
        503 Service Unavailable if degraded
    """
    from sqlalchemy import text

    from database.connection import get_async_session

    health_status = {
        "status": "healthy",
        "postgres": "unknown",
    }
    status_code = 200

    # Check PostgreSQL connectivity
    try:
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
            health_status["postgres"] = "connected"
    except Exception:
        health_status["postgres"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Aircon Booking API - Use /health for health checks"}
