"""Reveal-page code resolution.

Codes for most offers are hidden behind a per-offer reveal modal. The
resolver renders those modals through a small fixed pool of pages and runs
an ordered list of extraction strategies over each one. It never raises to
its caller: every failure downgrades to the sentinel code.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import structlog

from app.config import ScrapeSession
from app.core.exceptions import ResolverExhausted, ScraperError
from app.scrapers.adapters import couponfollow
from app.scrapers.base import SENTINEL_CODE, RawOffer, is_real_code
from app.scrapers.renderer import (
    BLOCK_MEDIA_AND_STYLES,
    WAIT_DOM_READY,
    Document,
    RenderOptions,
    Renderer,
)
from app.scrapers.utils.page_pool import PagePool

logger = structlog.get_logger(__name__)

ExtractionStrategy = Callable[[Document], Optional[str]]


def read_element_code(element) -> Optional[str]:
    """Read a code from an element.

    Inputs yield their value; anything else tries the clipboard attribute,
    the code attribute, then its text.
    """
    if element.name == "input":
        candidates = [element.get("value")]
    else:
        candidates = [
            element.get(couponfollow.CLIPBOARD_ATTR),
            element.get(couponfollow.CODE_ATTR),
            element.get_text(strip=True),
        ]
    for value in candidates:
        if is_real_code(value):
            return value.strip()
    return None


@dataclass(frozen=True)
class SelectorStrategy:
    """Extract a code from the first element matching ``selector``."""

    selector: str

    def __call__(self, document: Document) -> Optional[str]:
        element = document.select_one(self.selector)
        if element is None:
            return None
        return read_element_code(element)


DEFAULT_STRATEGIES: Sequence[ExtractionStrategy] = tuple(
    SelectorStrategy(selector) for selector in couponfollow.REVEAL_CODE_SELECTORS
)


def extract_code(document: Document, strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES) -> str:
    """Run strategies in order and return the first real code.

    Raises:
        ResolverExhausted: If no strategy produced a code
    """
    for strategy in strategies:
        code = strategy(document)
        if is_real_code(code):
            return code
    raise ResolverExhausted(document.url)


class CodeResolver:
    """Resolves reveal references into literal coupon codes."""

    def __init__(
        self,
        renderer: Renderer,
        session: ScrapeSession,
        strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
    ):
        self.renderer = renderer
        self.session = session
        self.strategies = tuple(strategies)
        self.options = RenderOptions(
            wait_until=WAIT_DOM_READY,
            timeout_ms=session.reveal_timeout_ms,
            blocked_resource_types=BLOCK_MEDIA_AND_STYLES,
            wait_selector=", ".join(couponfollow.REVEAL_CODE_SELECTORS),
            wait_selector_timeout_ms=session.reveal_selector_timeout_ms,
        )

    async def resolve(self, reveal_ref: str) -> str:
        """Resolve one reveal reference in its own render context.

        Returns:
            The code, or SENTINEL_CODE if it could not be obtained
        """
        try:
            async with self.renderer.page() as page:
                return await self._resolve_on(page, reveal_ref)
        except Exception as e:
            logger.error("reveal_context_failed", reveal_ref=reveal_ref, error=str(e), exc_info=True)
            return SENTINEL_CODE

    async def resolve_offers(self, offers: List[RawOffer], domain: Optional[str] = None) -> int:
        """Resolve every offer that needs a reveal, updating offers in place.

        Reveal pages are rendered through a pool of at most ``batch_size``
        pages shared round-robin by the offers of this merchant.

        Returns:
            Number of offers that received a real code
        """
        pending = [offer for offer in offers if offer.needs_reveal]
        if not pending:
            return 0

        log = logger.bind(domain=domain)
        size = min(self.session.batch_size, len(pending))
        log.info("resolving_reveals", count=len(pending), pool_size=size)

        async def _resolve_offer(offer: RawOffer) -> bool:
            async with pool.lease() as page:
                code = await self._resolve_on(page, offer.reveal_ref, domain=domain, offer_id=offer.local_id)
            if is_real_code(code):
                offer.direct_code = code
                return True
            return False

        try:
            async with PagePool(self.renderer, size, cooldown_ms=self.session.reveal_delay_ms) as pool:
                results = await asyncio.gather(*(_resolve_offer(offer) for offer in pending))
        except Exception as e:
            log.error("reveal_pool_failed", error=str(e), exc_info=True)
            return sum(1 for offer in pending if not offer.needs_reveal)

        resolved = sum(1 for ok in results if ok)
        log.info("reveals_resolved", resolved=resolved, unresolved=len(pending) - resolved)
        return resolved

    async def _resolve_on(
        self,
        page,
        reveal_ref: str,
        domain: Optional[str] = None,
        offer_id: Optional[int] = None,
    ) -> str:
        url = couponfollow.reveal_url(reveal_ref)
        log = logger.bind(domain=domain, offer_id=offer_id, url=url)
        try:
            document = await self.renderer.load(page, url, self.options)
            code = extract_code(document, self.strategies)
        except ResolverExhausted:
            log.info("reveal_code_not_found")
            return SENTINEL_CODE
        except ScraperError as e:
            log.warning("reveal_failed", error=str(e))
            return SENTINEL_CODE
        except Exception as e:
            log.error("reveal_failed", error=str(e), exc_info=True)
            return SENTINEL_CODE

        log.debug("reveal_code_found", code=code)
        return code
