"""Core coupon data structures shared by every pipeline stage.

RawOffer is what the offer extractor reads off a merchant page; the code
resolver fills in its code. CouponRecord is the normalized, persistable form.
"""

from dataclasses import dataclass
from typing import Optional

# Literal the source site uses to mean "no code needed". Never a real code.
SENTINEL_CODE = "AUTOMATIC"

DEFAULT_DISCOUNT = "Discount"
DEFAULT_TERMS = "Terms apply"


def is_real_code(code: Optional[str]) -> bool:
    """Return True if ``code`` is a usable coupon code (non-blank, not the sentinel)."""
    if code is None:
        return False
    stripped = code.strip()
    return bool(stripped) and stripped != SENTINEL_CODE


@dataclass
class RawOffer:
    """One coupon-type offer card as read from a merchant's offer page."""

    local_id: int  # Position on the page, starting at 1
    discount: str = DEFAULT_DISCOUNT
    terms: str = DEFAULT_TERMS
    verified: bool = False
    direct_code: Optional[str] = None
    reveal_ref: Optional[str] = None  # URL of the reveal modal

    @property
    def code(self) -> str:
        """Current code for this offer, or the sentinel if none is known yet."""
        if is_real_code(self.direct_code):
            return self.direct_code.strip()
        return SENTINEL_CODE

    @property
    def needs_reveal(self) -> bool:
        """True when the code can only be obtained from the reveal resource."""
        return not is_real_code(self.direct_code) and bool(self.reveal_ref)

    @property
    def is_actionable(self) -> bool:
        """False for offers that can never yield a code."""
        return is_real_code(self.direct_code) or bool(self.reveal_ref)


@dataclass(frozen=True)
class CouponRecord:
    """Normalized coupon ready for the persistence sink.

    Identity is (domain, code).
    """

    domain: str
    code: str
    discount: str = DEFAULT_DISCOUNT
    terms: str = DEFAULT_TERMS
    verified: bool = False

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.domain:
            raise ValueError("domain is required")
        if not is_real_code(self.code):
            raise ValueError(f"code must be a real coupon code, got {self.code!r}")

    @property
    def key(self) -> tuple:
        return (self.domain, self.code)

    def to_row(self) -> dict:
        """Column mapping used by the persistence sink."""
        return {
            "domain": self.domain,
            "code": self.code,
            "discount": self.discount,
            "terms": self.terms,
            "verified": self.verified,
        }
