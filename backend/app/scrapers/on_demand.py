"""Single-domain scraping for API requests.

The API process keeps one browser for on-demand lookups. It is launched on
the first request and shut down with the application.
"""

import asyncio
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import ScrapeSession
from app.scrapers.runner import build_renderer
from app.scrapers.scraper_service import FAILED, CouponScraperService, DomainOutcome
from app.scrapers.utils.browser_manager import BrowserManager
from app.services.coupon_service import DatabaseCouponSink

logger = structlog.get_logger(__name__)


class OnDemandScraper:
    """Runs the per-domain pipeline for one domain at a time per request."""

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        session: ScrapeSession,
        headless: bool = True,
    ):
        self.db_session_factory = db_session_factory
        self.session = session
        self.browser_manager = BrowserManager(headless=headless)
        self._service: Optional[CouponScraperService] = None
        self._lock = asyncio.Lock()
        # At most concurrent_domains lookups share the browser at once
        self._slots = asyncio.Semaphore(session.concurrent_domains)

    async def _get_service(self) -> CouponScraperService:
        async with self._lock:
            if self._service is None:
                try:
                    await self.browser_manager.start()
                except Exception:
                    # Drop a half-started Playwright so the next request retries cleanly
                    await self.browser_manager.stop()
                    raise
                self._service = CouponScraperService.from_renderer(
                    build_renderer(self.browser_manager, self.session),
                    DatabaseCouponSink(self.db_session_factory),
                    self.session,
                )
                logger.info("on_demand_scraper_ready")
        return self._service

    async def scrape(self, domain: str) -> DomainOutcome:
        """Scrape and persist one domain.

        A browser that cannot be launched is reported as a failed outcome.
        """
        async with self._slots:
            try:
                service = await self._get_service()
            except Exception as e:
                logger.error("on_demand_browser_failed", domain=domain, error=str(e), exc_info=True)
                return DomainOutcome(domain=domain, status=FAILED, attempts=0, error=f"browser unavailable: {e}")
            return await service.scrape_domain(domain)

    async def close(self) -> None:
        async with self._lock:
            self._service = None
            await self.browser_manager.stop()
