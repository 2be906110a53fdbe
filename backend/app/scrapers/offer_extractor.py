"""Offer-card extraction from a merchant's offer page."""

from typing import List, Optional

import structlog

from app.config import ScrapeSession
from app.scrapers.adapters import couponfollow
from app.scrapers.base import DEFAULT_DISCOUNT, DEFAULT_TERMS, RawOffer, is_real_code
from app.scrapers.renderer import (
    BLOCK_MEDIA,
    WAIT_DOM_READY,
    Document,
    RenderOptions,
    Renderer,
)

logger = structlog.get_logger(__name__)


def _text_or_default(card, selector: str, default: str) -> str:
    element = card.select_one(selector)
    if element is None:
        return default
    text = element.get_text(" ", strip=True)
    return text or default


def _direct_code(card) -> Optional[str]:
    """Code inlined on the card's reveal control, if it is a real one."""
    control = card.select_one(couponfollow.REVEAL_CONTROL_SELECTOR)
    if control is None:
        return None
    for attr in (couponfollow.CODE_ATTR, couponfollow.CLIPBOARD_ATTR):
        value = control.get(attr)
        if is_real_code(value):
            return value.strip()
    return None


def parse_offers(document: Document) -> List[RawOffer]:
    """Parse every coupon-type offer card on a merchant page.

    Cards of other types (e.g. "deal") are skipped. Offers keep document
    order and are numbered from 1.
    """
    offers: List[RawOffer] = []
    for card in document.select(couponfollow.OFFER_CARD_SELECTOR):
        code = _direct_code(card)
        reveal_ref = None
        if code is None:
            reveal_ref = (card.get(couponfollow.REVEAL_REF_ATTR) or "").strip() or None

        offers.append(
            RawOffer(
                local_id=len(offers) + 1,
                discount=_text_or_default(card, couponfollow.OFFER_TITLE_SELECTOR, DEFAULT_DISCOUNT),
                terms=_text_or_default(card, couponfollow.OFFER_DESCRIPTION_SELECTOR, DEFAULT_TERMS),
                verified=card.get(couponfollow.VERIFIED_ATTR) == couponfollow.VERIFIED_TRUE,
                direct_code=code,
                reveal_ref=reveal_ref,
            )
        )
    return offers


class OfferExtractor:
    """Renders a merchant page and reads its coupon offer cards."""

    def __init__(self, renderer: Renderer, session: ScrapeSession):
        self.renderer = renderer
        self.session = session
        self.options = RenderOptions(
            wait_until=WAIT_DOM_READY,
            timeout_ms=session.navigation_timeout_ms,
            blocked_resource_types=BLOCK_MEDIA,
        )

    async def extract_offers(self, domain: str) -> List[RawOffer]:
        """Fetch the merchant's offer page and parse its coupon cards.

        Args:
            domain: Merchant domain (e.g. "acme.com")

        Returns:
            RawOffer list in page order; empty if the page has no coupon cards

        Raises:
            NavigationTimeout: If the page did not load in time
            NavigationError: On any other render failure
        """
        url = couponfollow.merchant_url(domain)
        log = logger.bind(domain=domain)

        document = await self.renderer.render(url, self.options)
        offers = parse_offers(document)

        if not offers:
            log.info("extraction_empty", url=url)
            return offers

        log.info(
            "offers_extracted",
            count=len(offers),
            direct_codes=sum(1 for o in offers if not o.needs_reveal and o.is_actionable),
            needs_reveal=sum(1 for o in offers if o.needs_reveal),
        )
        return offers
