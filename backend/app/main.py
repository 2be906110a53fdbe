"""Nectar Coupons -- FastAPI Application Entry Point.

Run from backend/ with: python -m uvicorn app.main:app --port 8000
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.router import api_v1_router
from app.config import settings
from app.core.logging import configure_logging
from app.db.session import async_session_factory, create_tables
from app.scrapers.on_demand import OnDemandScraper
from app.scrapers.scheduler import ScrapeScheduler
from app.services.cache_service import get_cache_service

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    configure_logging(settings.LOG_LEVEL)

    # Startup
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    try:
        await create_tables()
        logger.info("database_tables_ready")
    except SQLAlchemyError as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    session = settings.scrape_session()

    app.state.on_demand_scraper = None
    if settings.ON_DEMAND_SCRAPE:
        app.state.on_demand_scraper = OnDemandScraper(
            async_session_factory, session, headless=settings.HEADLESS
        )

    # Periodic full sweeps (only in non-test environments)
    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED and settings.ENVIRONMENT != "test":
        scheduler = ScrapeScheduler(
            async_session_factory,
            session,
            categories=settings.get_categories(),
            headless=settings.HEADLESS,
        )
        scheduler.start(settings.SCRAPE_INTERVAL_MINUTES)
        app.state.scheduler = scheduler
    else:
        logger.info("scheduler_disabled")

    cache = get_cache_service()
    if await cache.health_check():
        logger.info("redis_connected")
    else:
        logger.warning("redis_unavailable", detail="operating without caching")

    yield

    # Shutdown
    logger.info("api_stopping")

    if app.state.scheduler:
        app.state.scheduler.stop()

    if app.state.on_demand_scraper:
        await app.state.on_demand_scraper.close()

    await cache.close()


app = FastAPI(
    title="Nectar Coupons API",
    description="Coupon codes scraped from couponfollow.com, served per merchant domain",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS (the browser extension calls from arbitrary merchant pages)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Nectar Coupons API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
