"""
Club Booking API - Main Application Entry Point

Training-event reservations for a sports club:
- Tier entitlements resolved from time-bounded group memberships
- Category eligibility rules and a same-day 18:00 booking cutoff
- Atomic slot and credit accounting under concurrent bookings
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from club_booking.core.config import get_settings
from club_booking.core.logging import setup_logging, get_logger
from club_booking.core.metrics import metrics_endpoint
from club_booking.api.router import api_router
from club_booking.api.middleware import RequestLoggingMiddleware
from club_booking.services.cache_service import get_redis, close_redis, get_cache_stats
from club_booking.services.eligibility import get_hierarchy, get_rule_table

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timezone=settings.CLUB_TIMEZONE,
    )

    # Fail fast on a bad hierarchy name or rules file
    get_hierarchy()
    rules = get_rule_table()
    logger.info("rule_table_loaded", categories=len(rules), hierarchy=settings.TIER_HIERARCHY)

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without day schedule cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Club training booking API with tier eligibility and credit accounting",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()
