"""Merchant domain enumeration from category listing pages."""

from typing import List

import structlog

from app.config import ScrapeSession
from app.core.exceptions import ScraperError
from app.scrapers.adapters import couponfollow
from app.scrapers.renderer import (
    BLOCK_MEDIA,
    WAIT_NETWORK_IDLE,
    Document,
    RenderOptions,
    Renderer,
)

logger = structlog.get_logger(__name__)


def parse_store_links(document: Document) -> List[str]:
    """Extract unique merchant domains from a category listing page.

    Anchors whose href does not point at a single store page are ignored.
    Document order is kept; later duplicates are dropped.
    """
    domains: List[str] = []
    seen = set()
    for link in document.select(couponfollow.STORE_LINK_SELECTOR):
        domain = couponfollow.domain_from_store_href(link.get("href"))
        if domain and domain not in seen:
            seen.add(domain)
            domains.append(domain)
    return domains


class DomainLister:
    """Lists the merchant domains of one category.

    Always recomputed from scratch; a failed render yields an empty list so
    the orchestrator simply skips the category.
    """

    def __init__(self, renderer: Renderer, session: ScrapeSession):
        self.renderer = renderer
        self.session = session
        self.options = RenderOptions(
            wait_until=WAIT_NETWORK_IDLE,
            timeout_ms=session.navigation_timeout_ms,
            blocked_resource_types=BLOCK_MEDIA,
        )

    async def list_domains(self, category: str) -> List[str]:
        """Render the category's listing page and return its merchant domains.

        Args:
            category: Letter a-z or a non-alphabetic alias such as "other"

        Returns:
            Unique merchant domains in page order, empty on render failure

        Raises:
            ValueError: If the category is unknown
        """
        url = couponfollow.category_url(category)
        log = logger.bind(category=category, url=url)
        log.info("listing_category")

        try:
            document = await self.renderer.render(url, self.options)
        except ScraperError as e:
            log.error("listing_category_failed", error=str(e))
            return []
        except Exception as e:
            log.error("listing_category_failed", error=str(e), exc_info=True)
            return []

        domains = parse_store_links(document)
        if not domains:
            log.warning("category_empty")
        else:
            log.info("category_listed", count=len(domains))
        return domains
