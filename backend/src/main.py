# pyright: reportMissingTypeStubs=false
"""
Booking Calendar Backend API

A FastAPI application for a single-calendar booking engine.

Features:
- Public slot listing and code-verified self-service booking
- Single-use management links for rescheduling and cancelling
- Admin management of bookings, booking types, exclusions and weekly hours
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import admin, auth, public
from core.config import ADMIN_EMAIL, ADMIN_PASSWORD, AUTO_CREATE_TABLES
from core.constants import CORS_ORIGINS
from core.database import create_tables, get_db_context
from core.exceptions import (
    BookingError, ConflictError, InvalidCode, InvalidConfiguration, InvalidExclusion, NotFound,
    NotificationDeliveryError, SessionExpiredOrMissing, TokenExpired, TokenInvalid,
)
from services.admin_auth_service import AdminAuthService
from services.availability_service import AvailabilityService
from services.booking_guard import BookingGuard
from services.session_cleanup_scheduler import start_session_cleanup_scheduler, stop_session_cleanup_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)


def bootstrap_database() -> None:
    """Seed the rows every deployment needs: lock row, weekdays and the admin account."""
    if AUTO_CREATE_TABLES:
        create_tables()
    with get_db_context() as db:
        BookingGuard.ensure_booking_lock(db)
        AvailabilityService.ensure_weekly_availability(db)
        AdminAuthService.ensure_admin_account(db, ADMIN_EMAIL, ADMIN_PASSWORD)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting Booking Calendar API")

    bootstrap_database()

    # Database sessions are created fresh for each sweep run
    try:
        await start_session_cleanup_scheduler()
    except Exception as e:
        logger.exception(f"Failed to start session cleanup scheduler: {e}")

    yield

    try:
        await stop_session_cleanup_scheduler()
    except Exception as e:
        logger.exception(f"Error stopping session cleanup scheduler: {e}")

    logger.info("Shutting down Booking Calendar API")


app = FastAPI(
    title="Booking Calendar Backend",
    description="Single-calendar booking engine with verified self-service booking",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(
    public.router,
    prefix="/api/public",
    tags=["public"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Invalid token"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        410: {"description": "Expired"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    auth.router,
    prefix="/api/auth",
    tags=["authentication"],
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["admin"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


_ERROR_STATUS = (
    (ConflictError, 409),
    (NotFound, 404),
    (TokenInvalid, 401),
    (TokenExpired, 410),
    (SessionExpiredOrMissing, 410),
    (InvalidCode, 400),
    (InvalidConfiguration, 400),
    (InvalidExclusion, 400),
    (NotificationDeliveryError, 502),
)


def status_for_error(exc: BookingError) -> int:
    for error_class, status_code in _ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 400


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Translate domain errors into JSON responses."""
    status_code = status_for_error(exc)
    if status_code >= 500:
        logger.error(f"{exc.error_type} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.error_type} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )
