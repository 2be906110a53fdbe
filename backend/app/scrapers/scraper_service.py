"""Per-domain scrape pipeline.

This service connects the extraction stages with the persistence sink:
offer extraction → reveal resolution → normalization → upsert. It owns the
per-domain timeout and the bounded whole-domain retry loop.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from app.config import ScrapeSession
from app.core.exceptions import SinkWriteFailure
from app.scrapers.base import CouponRecord
from app.scrapers.code_resolver import CodeResolver
from app.scrapers.normalizer import normalize
from app.scrapers.offer_extractor import OfferExtractor
from app.scrapers.renderer import Renderer
from app.services.coupon_service import CouponSink

logger = structlog.get_logger(__name__)

SUCCEEDED = "succeeded"
EMPTY = "empty"
FAILED = "failed"


@dataclass
class DomainOutcome:
    """Result of processing one merchant domain."""

    domain: str
    status: str
    attempts: int = 1
    offers_found: int = 0
    coupons_saved: int = 0
    records: List[CouponRecord] = field(default_factory=list)
    error: Optional[str] = None
    sink_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


class CouponScraperService:
    """Runs the full pipeline for one merchant domain at a time.

    Safe to share between concurrent domains: it holds no per-domain state.
    """

    def __init__(
        self,
        extractor: OfferExtractor,
        resolver: CodeResolver,
        sink: CouponSink,
        session: ScrapeSession,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.extractor = extractor
        self.resolver = resolver
        self.sink = sink
        self.session = session
        self._sleep = sleep

    @classmethod
    def from_renderer(
        cls,
        renderer: Renderer,
        sink: CouponSink,
        session: ScrapeSession,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "CouponScraperService":
        """Wire extractor and resolver onto one renderer."""
        return cls(
            extractor=OfferExtractor(renderer, session),
            resolver=CodeResolver(renderer, session),
            sink=sink,
            session=session,
            sleep=sleep,
        )

    async def scrape_domain(self, domain: str) -> DomainOutcome:
        """Scrape, normalize and persist one domain, retrying whole-domain failures.

        A failed attempt (render error, timeout, unexpected exception) is
        retried up to ``domain_retries`` times with a fixed delay. Never raises
        except on cancellation.

        Args:
            domain: Merchant domain

        Returns:
            DomainOutcome with status succeeded, empty or failed
        """
        log = logger.bind(domain=domain)
        attempts = 0

        def _before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception()
            log.warning(
                "domain_retry",
                attempt=retry_state.attempt_number,
                max_retries=self.session.domain_retries,
                error=str(exc) or type(exc).__name__,
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.session.domain_retries + 1),
                wait=wait_fixed(self.session.domain_retry_delay_ms / 1000),
                retry=retry_if_exception_type(Exception),
                before_sleep=_before_sleep,
                sleep=self._sleep,
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    outcome = await asyncio.wait_for(
                        self._scrape_once(domain),
                        timeout=self.session.domain_timeout_ms / 1000,
                    )
        except Exception as e:
            error = str(e) or type(e).__name__
            log.error("domain_failed", attempts=attempts, error=error)
            return DomainOutcome(domain=domain, status=FAILED, attempts=attempts, error=error)

        outcome.attempts = attempts
        return outcome

    async def _scrape_once(self, domain: str) -> DomainOutcome:
        log = logger.bind(domain=domain)
        log.info("scraping_domain")

        offers = await self.extractor.extract_offers(domain)
        if not offers:
            return DomainOutcome(domain=domain, status=EMPTY)

        await self.resolver.resolve_offers(offers, domain=domain)
        records = normalize(domain, offers)

        outcome = DomainOutcome(
            domain=domain,
            status=SUCCEEDED,
            offers_found=len(offers),
            records=records,
        )
        if not records:
            log.warning("no_valid_coupons", offers=len(offers))
            return outcome

        result = await self.sink.upsert(records)
        if result.ok:
            outcome.coupons_saved = result.written
        else:
            failure = SinkWriteFailure(domain, result.reason or "unknown error")
            outcome.sink_error = failure.reason
            log.error("sink_write_failed", error=str(failure))

        log.info("domain_complete", offers=len(offers), coupons=len(records), saved=outcome.coupons_saved)
        return outcome
