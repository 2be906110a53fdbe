"""APScheduler-based periodic scrape scheduler.

Runs the full category sweep on a fixed interval inside the API process and
records every run in the scrape_runs table.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Sequence
import traceback
import structlog

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.job import Job
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import ScrapeSession
from app.core.exceptions import AllDomainsFailed
from app.models.scrape_run import ScrapeRun
from app.scrapers.orchestrator import RunSummary
from app.scrapers.runner import run_scrape
from app.services.coupon_service import CouponSink, DatabaseCouponSink

logger = structlog.get_logger(__name__)

JOB_ID = "scrape_all_categories"

ScrapeFn = Callable[[ScrapeSession, CouponSink, Optional[Sequence[str]]], Awaitable[RunSummary]]


def _apply_summary(run: ScrapeRun, summary: RunSummary) -> None:
    run.domains_found = summary.domains
    run.domains_succeeded = summary.succeeded
    run.domains_empty = summary.empty
    run.domains_failed = summary.failed
    run.coupons_saved = summary.coupons_saved
    run.summary = summary.as_dict()


class ScrapeScheduler:
    """Manages the periodic scrape job.

    This scheduler:
    - Starts and stops the background job
    - Never runs two sweeps at once
    - Records each run to the scrape_runs table
    - Keeps running after a failed sweep
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        session: ScrapeSession,
        categories: Optional[List[str]] = None,
        headless: bool = True,
        scrape_fn: Optional[ScrapeFn] = None,
    ):
        """Initialize the scheduler.

        Args:
            db_session_factory: Async session factory for database access
            session: Scrape parameters used for every run
            categories: Categories to sweep; defaults to the session's
            headless: Run Chromium headless
            scrape_fn: Override for the sweep itself (tests)
        """
        self.db_session_factory = db_session_factory
        self.session = session
        self.categories = categories
        self.headless = headless
        self._scrape_fn = scrape_fn
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="scrape_scheduler")

    def start(self, interval_minutes: int) -> Job:
        """Start the scheduler with one interval job.

        Args:
            interval_minutes: Minutes between sweeps
        """
        trigger = IntervalTrigger(
            minutes=interval_minutes,
            start_date=datetime.now(timezone.utc),
            timezone="UTC",
        )
        job = self.scheduler.add_job(
            func=self._run_wrapper,
            trigger=trigger,
            id=JOB_ID,
            name="Scrape all categories",
            replace_existing=True,
            max_instances=1,  # Sweeps take longer than short intervals
        )

        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started", interval_minutes=interval_minutes)
        else:
            self.logger.warning("scheduler_already_running")
        return job

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running sweep."""
        if self.scheduler.running:
            # AsyncIOScheduler finishes shutting down on the next loop iteration
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stop_requested")
        else:
            self.logger.warning("scheduler_not_running")

    async def _run_wrapper(self) -> None:
        """Called by APScheduler; keeps job failures from stopping the scheduler."""
        try:
            await self.run_scheduled_scrape()
        except Exception as e:
            self.logger.error("scrape_job_failed", error=str(e), exc_info=True)

    async def _scrape(self, sink: CouponSink) -> RunSummary:
        if self._scrape_fn is not None:
            return await self._scrape_fn(self.session, sink, self.categories)
        return await run_scrape(self.session, sink, categories=self.categories, headless=self.headless)

    async def run_scheduled_scrape(self) -> ScrapeRun:
        """Execute one sweep and record it.

        This method:
        1. Creates a ScrapeRun record with status="running"
        2. Runs the sweep, upserting through a database sink
        3. Updates the ScrapeRun with counts, or with the error

        Returns:
            The finished ScrapeRun record
        """
        categories = list(self.categories if self.categories is not None else self.session.categories)
        self.logger.info("starting_scrape_run", categories=categories)

        async with self.db_session_factory() as db:
            run = ScrapeRun(
                status="running",
                categories=",".join(categories),
                started_at=datetime.now(timezone.utc),
            )
            db.add(run)
            await db.commit()
            await db.refresh(run)

            start_time = datetime.now(timezone.utc)
            sink = DatabaseCouponSink(self.db_session_factory)

            try:
                summary = await self._scrape(sink)
                run.status = "completed"
                _apply_summary(run, summary)
            except AllDomainsFailed as e:
                run.status = "failed"
                run.error_message = str(e)
                if e.summary is not None:
                    _apply_summary(run, e.summary)
            except Exception as e:
                run.status = "failed"
                run.error_message = str(e)
                run.error_traceback = traceback.format_exc()

            end_time = datetime.now(timezone.utc)
            duration = (end_time - start_time).total_seconds()
            run.completed_at = end_time
            run.duration_seconds = Decimal(str(round(duration, 2)))
            await db.commit()

            log_method = self.logger.info if run.status == "completed" else self.logger.error
            log_method(
                "scrape_run_finished",
                run_id=str(run.id),
                status=run.status,
                duration_seconds=float(duration),
                domains_succeeded=run.domains_succeeded,
                coupons_saved=run.coupons_saved,
                error=run.error_message,
            )
            return run

    def get_job_status(self) -> Optional[dict]:
        """Return next-run information for the sweep job, if scheduled."""
        job = self.scheduler.get_job(JOB_ID)
        if job is None:
            return None
        return {
            "job_id": job.id,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger),
        }

    def is_running(self) -> bool:
        return self.scheduler.running
