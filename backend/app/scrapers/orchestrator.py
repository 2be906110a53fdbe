"""Category-by-category, batch-by-batch scrape orchestration.

Categories run one at a time. Each category's domains are split into batches
of ``concurrent_domains`` that run concurrently; the orchestrator pauses
between batches and, for longer, between categories to keep the aggregate
request rate against the target site low.
"""

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from app.config import ScrapeSession
from app.core.exceptions import AllDomainsFailed
from app.scrapers.domain_lister import DomainLister
from app.scrapers.scraper_service import EMPTY, FAILED, SUCCEEDED, CouponScraperService, DomainOutcome

logger = structlog.get_logger(__name__)


class RunState(str, enum.Enum):
    IDLE = "idle"
    LISTING_CATEGORY = "listing_category"
    BATCHING_DOMAINS = "batching_domains"
    PROCESSING_BATCH = "processing_batch"
    DELAYING = "delaying"
    DONE = "done"


@dataclass
class CategorySummary:
    """Counts for one category."""

    category: str
    domains: int = 0
    succeeded: int = 0
    empty: int = 0
    failed: int = 0
    coupons_saved: int = 0
    sink_failures: int = 0

    def record(self, outcome: DomainOutcome) -> None:
        if outcome.status == SUCCEEDED:
            self.succeeded += 1
        elif outcome.status == EMPTY:
            self.empty += 1
        elif outcome.status == FAILED:
            self.failed += 1
        self.coupons_saved += outcome.coupons_saved
        if outcome.sink_error:
            self.sink_failures += 1

    def as_dict(self) -> Dict[str, int]:
        return {
            "domains": self.domains,
            "succeeded": self.succeeded,
            "empty": self.empty,
            "failed": self.failed,
            "coupons_saved": self.coupons_saved,
            "sink_failures": self.sink_failures,
        }


@dataclass
class RunSummary:
    """Totals for a whole run, with the per-category breakdown."""

    categories: List[CategorySummary] = field(default_factory=list)

    @property
    def domains(self) -> int:
        return sum(c.domains for c in self.categories)

    @property
    def succeeded(self) -> int:
        return sum(c.succeeded for c in self.categories)

    @property
    def empty(self) -> int:
        return sum(c.empty for c in self.categories)

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.categories)

    @property
    def coupons_saved(self) -> int:
        return sum(c.coupons_saved for c in self.categories)

    @property
    def sink_failures(self) -> int:
        return sum(c.sink_failures for c in self.categories)

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {c.category: c.as_dict() for c in self.categories}


def partition(domains: Sequence[str], size: int) -> List[List[str]]:
    """Split domains into consecutive batches of at most ``size``."""
    if size < 1:
        raise ValueError("size must be at least 1")
    return [list(domains[i:i + size]) for i in range(0, len(domains), size)]


class ScrapeOrchestrator:
    """Drives a full run: list categories, batch their domains, tally results."""

    def __init__(
        self,
        lister: DomainLister,
        scraper: CouponScraperService,
        session: ScrapeSession,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.lister = lister
        self.scraper = scraper
        self.session = session
        self._sleep = sleep
        self.state = RunState.IDLE
        self.logger = logger.bind(service="orchestrator")

    def _transition(self, state: RunState, **context) -> None:
        self.state = state
        self.logger.debug("state_changed", state=state.value, **context)

    async def _delay(self, delay_ms: int, reason: str) -> None:
        if delay_ms <= 0:
            return
        self._transition(RunState.DELAYING, reason=reason, delay_ms=delay_ms)
        await self._sleep(delay_ms / 1000)

    async def run(self, categories: Optional[Sequence[str]] = None) -> RunSummary:
        """Process every category in order.

        Args:
            categories: Category tokens; defaults to the session's categories

        Returns:
            RunSummary with per-category counts

        Raises:
            AllDomainsFailed: If not a single domain succeeded during the run
        """
        categories = list(categories if categories is not None else self.session.categories)
        summary = RunSummary()
        self.logger.info("run_started", categories=categories)

        for index, category in enumerate(categories):
            category_summary = await self.run_category(category)
            summary.categories.append(category_summary)

            if index < len(categories) - 1:
                await self._delay(self.session.inter_category_delay_ms, reason="between_categories")

        self._transition(RunState.DONE)
        self.logger.info(
            "run_complete",
            domains=summary.domains,
            succeeded=summary.succeeded,
            empty=summary.empty,
            failed=summary.failed,
            coupons_saved=summary.coupons_saved,
            sink_failures=summary.sink_failures,
        )

        if summary.succeeded == 0:
            self.logger.error("all_domains_failed", failed=summary.failed, empty=summary.empty)
            raise AllDomainsFailed(summary)
        return summary

    async def run_category(self, category: str) -> CategorySummary:
        """List one category's domains and process them batch by batch."""
        log = self.logger.bind(category=category)
        summary = CategorySummary(category=category)

        self._transition(RunState.LISTING_CATEGORY, category=category)
        domains = await self.lister.list_domains(category)
        if not domains:
            log.warning("category_skipped")
            return summary
        summary.domains = len(domains)

        self._transition(RunState.BATCHING_DOMAINS, category=category, domains=len(domains))
        batches = partition(domains, self.session.concurrent_domains)

        for number, batch in enumerate(batches, start=1):
            self._transition(RunState.PROCESSING_BATCH, category=category, batch=number)
            log.info("processing_batch", batch=number, batches=len(batches), size=len(batch))

            outcomes = await asyncio.gather(*(self.scraper.scrape_domain(domain) for domain in batch))
            for outcome in outcomes:
                summary.record(outcome)

            if number < len(batches):
                await self._delay(self.session.inter_batch_delay_ms, reason="between_batches")

        log.info("category_complete", **summary.as_dict())
        return summary
