import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter

from .config import settings
from .database import create_tables
from .exceptions import ErrorCode, TripDeskError
from .routers import (
    analytics_router,
    approval_router,
    audit_router,
    booking_router,
    listing_router,
    review_router,
    support_router,
    user_router,
)

# Setup logger
logger = logging.getLogger("tripdesk")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting admin back-office...")

    if settings.CREATE_TABLES_ON_STARTUP:
        await create_tables()
        logger.info("Database tables ensured.")

    # Initialize Redis and FastAPILimiter
    redis_client = None
    try:
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
    except Exception as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")

    yield  # The application is now running

    logger.info("Shutting down admin back-office...")
    if redis_client is not None:
        await redis_client.aclose()


# Create the FastAPI app instance, passing the lifespan manager
app = FastAPI(
    title="TripDesk Admin API",
    description="Admin back-office for properties, vehicles and tours: approvals, bookings, reviews, support and analytics.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(TripDeskError)
async def tripdesk_error_handler(request: Request, exc: TripDeskError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.public_message, "code": exc.code.value},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": f"{field}: {message}" if field else message,
            "code": ErrorCode.VALIDATION_ERROR.value,
        },
    )


# Include the admin API routes
app.include_router(booking_router.router)
app.include_router(listing_router.router)
app.include_router(approval_router.router)
app.include_router(review_router.router)
app.include_router(support_router.router)
app.include_router(analytics_router.router)
app.include_router(user_router.router)
app.include_router(audit_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the TripDesk admin back-office"}
