"""Batch scrape runner.

Builds the pipeline on a fresh Chromium instance, runs it over the
configured categories and prints a summary table. Exit status is 1 when no
domain succeeded at all, 0 otherwise.

Usage:
    python scripts/run_scraper.py
    python scripts/run_scraper.py --letters a,b,c
    python scripts/run_scraper.py --letters other --dry-run
"""

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

import structlog

from app.config import ScrapeSession, settings
from app.core.exceptions import AllDomainsFailed
from app.core.logging import configure_logging
from app.scrapers.adapters.couponfollow import category_token
from app.scrapers.domain_lister import DomainLister
from app.scrapers.orchestrator import RunSummary, ScrapeOrchestrator
from app.scrapers.renderer import PlaywrightRenderer, Renderer
from app.scrapers.scraper_service import CouponScraperService
from app.scrapers.utils.browser_manager import BrowserManager
from app.scrapers.utils.rate_limiter import HostRateLimiter
from app.services.coupon_service import CouponSink, LoggingCouponSink

logger = structlog.get_logger(__name__)


def build_orchestrator(renderer: Renderer, sink: CouponSink, session: ScrapeSession) -> ScrapeOrchestrator:
    """Wire every pipeline stage onto one renderer and sink."""
    return ScrapeOrchestrator(
        lister=DomainLister(renderer, session),
        scraper=CouponScraperService.from_renderer(renderer, sink, session),
        session=session,
    )


def build_renderer(browser_manager: BrowserManager, session: ScrapeSession) -> PlaywrightRenderer:
    return PlaywrightRenderer(browser_manager, rate_limiter=HostRateLimiter(session.requests_per_minute))


async def run_scrape(
    session: ScrapeSession,
    sink: CouponSink,
    categories: Optional[Sequence[str]] = None,
    headless: bool = True,
) -> RunSummary:
    """Run one full scrape on a dedicated browser.

    Raises:
        AllDomainsFailed: If no domain succeeded
    """
    async with BrowserManager(headless=headless) as browser_manager:
        orchestrator = build_orchestrator(build_renderer(browser_manager, session), sink, session)
        return await orchestrator.run(categories)


def print_summary(summary: RunSummary, dry_run: bool = False) -> None:
    """Print a formatted summary table of a run."""
    mode_label = "[DRY RUN] " if dry_run else ""
    print("\n" + "=" * 64)
    print(f"  {mode_label}Coupon scrape summary")
    print("=" * 64)
    print(f"{'Category':<10} {'Domains':>8} {'OK':>6} {'Empty':>6} {'Failed':>7} {'Coupons':>8}")
    print("-" * 64)
    for c in summary.categories:
        print(
            f"{c.category:<10} "
            f"{c.domains:>8} "
            f"{c.succeeded:>6} "
            f"{c.empty:>6} "
            f"{c.failed:>7} "
            f"{c.coupons_saved:>8}"
        )
    print("-" * 64)
    print(
        f"{'Total':<10} "
        f"{summary.domains:>8} "
        f"{summary.succeeded:>6} "
        f"{summary.empty:>6} "
        f"{summary.failed:>7} "
        f"{summary.coupons_saved:>8}"
    )
    print("=" * 64)
    if summary.sink_failures:
        print(f"\n[warning] {summary.sink_failures} domain(s) could not be saved to the database")


async def main(categories: List[str], dry_run: bool, headless: bool) -> int:
    """Main async runner.

    Returns:
        Process exit status
    """
    session = settings.scrape_session()

    if dry_run:
        sink: CouponSink = LoggingCouponSink()
    else:
        from app.db.session import async_session_factory, create_tables
        from app.services.coupon_service import DatabaseCouponSink

        await create_tables()
        sink = DatabaseCouponSink(async_session_factory)

    try:
        summary = await run_scrape(session, sink, categories=categories, headless=headless)
    except AllDomainsFailed as e:
        if e.summary is not None:
            print_summary(e.summary, dry_run=dry_run)
        print("\n[error] All domains failed to process")
        return 1

    print_summary(summary, dry_run=dry_run)
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scrape coupon codes for every merchant in the given categories.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_scraper.py --letters a,b
  python scripts/run_scraper.py --letters other --dry-run
  LETTERS=x,y,z python scripts/run_scraper.py
        """,
    )
    parser.add_argument(
        "--letters",
        help="Comma-separated categories (a-z or 'other'). Defaults to LETTERS or every category.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Scrape but do not write to the database.",
    )
    parser.add_argument(
        "--no-headless",
        action="store_true",
        help="Show the browser window (debugging).",
    )
    return parser.parse_args(argv)


def cli(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point used by scripts/run_scraper.py."""
    args = parse_args(argv)
    configure_logging(settings.LOG_LEVEL, settings.LOG_DIR or None)

    if args.letters:
        categories = [c.strip().lower() for c in args.letters.split(",") if c.strip()]
    else:
        categories = settings.get_categories()

    try:
        for category in categories:
            category_token(category)
    except ValueError as e:
        print(f"[error] {e}")
        return 2

    headless = settings.HEADLESS and not args.no_headless
    try:
        return asyncio.run(main(categories, dry_run=args.dry_run, headless=headless))
    except KeyboardInterrupt:
        print("\n\n[interrupted] Stopped by user.")
        return 130


if __name__ == "__main__":
    sys.exit(cli())
