"""CouponFollow site contract.

URL templates, CSS selectors and attribute literals for couponfollow.com.
Everything that depends on the target site's markup lives here so the
pipeline stages stay site-agnostic.
"""

import string
from typing import Optional
from urllib.parse import urljoin, urlsplit

BASE_URL = "https://couponfollow.com"

# Category listing: one page per letter, plus one bucket for merchants whose
# names start with a digit or symbol.
CATEGORY_URL_TEMPLATE = BASE_URL + "/site/browse/{token}/all"
NUMERIC_CATEGORY_TOKEN = "number"
NUMERIC_CATEGORY_ALIASES = frozenset({"other", "#", "0-9", NUMERIC_CATEGORY_TOKEN})

# Merchant offer page
MERCHANT_URL_TEMPLATE = BASE_URL + "/site/{domain}"
STORE_LINK_PREFIX = "/site/"
STORE_LINK_SELECTOR = 'ul li a[href^="/site/"]'

# Offer cards
OFFER_CARD_SELECTOR = '.offer-card.regular-offer[data-type="coupon"]'
OFFER_TITLE_SELECTOR = ".offer-title"
OFFER_DESCRIPTION_SELECTOR = ".offer-description"
VERIFIED_ATTR = "data-is-verified"
VERIFIED_TRUE = "True"
REVEAL_CONTROL_SELECTOR = ".show-code"
REVEAL_REF_ATTR = "data-modal"

# Reveal modal
CODE_INPUT_SELECTOR = "input#code.input.code"
CLIPBOARD_ATTR = "data-clipboard-text"
CODE_ATTR = "data-code"

# Tried in order on a reveal page; the first selector is the current markup,
# the rest cover older modal layouts.
REVEAL_CODE_SELECTORS = (
    CODE_INPUT_SELECTOR,
    "input.code",
    "[data-clipboard-text]",
    "[data-code]",
    ".code-text",
)


def category_token(category: str) -> str:
    """Map a category key to the token used in the listing URL.

    Args:
        category: A single letter a-z (any case) or one of the non-alphabetic aliases

    Returns:
        URL token for the category

    Raises:
        ValueError: If the category is not a letter or a known alias
    """
    key = (category or "").strip().lower()
    if key in NUMERIC_CATEGORY_ALIASES:
        return NUMERIC_CATEGORY_TOKEN
    if len(key) == 1 and key in string.ascii_lowercase:
        return key
    raise ValueError(f"Unknown category: {category!r}")


def category_url(category: str) -> str:
    return CATEGORY_URL_TEMPLATE.format(token=category_token(category))


def merchant_url(domain: str) -> str:
    return MERCHANT_URL_TEMPLATE.format(domain=domain)


def reveal_url(reveal_ref: str) -> str:
    """Absolute URL of a reveal modal (refs on the page are usually relative)."""
    return urljoin(BASE_URL + "/", reveal_ref)


def domain_from_store_href(href: Optional[str]) -> Optional[str]:
    """Extract the merchant domain from a ``/site/<domain>`` link.

    Returns None for links that do not point at a single store page.
    """
    if not href:
        return None
    path = urlsplit(href.strip()).path
    if not path.startswith(STORE_LINK_PREFIX):
        return None
    domain = path[len(STORE_LINK_PREFIX):].strip().rstrip("/")
    if not domain or "/" in domain:
        return None
    return domain
