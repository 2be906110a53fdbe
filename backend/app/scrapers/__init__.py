"""Coupon scraping pipeline.

This package provides:
- A page renderer over a shared headless Chromium
- Domain listing, offer extraction and reveal-code resolution for couponfollow.com
- Normalization into de-duplicated coupon records
- The per-domain service, the batch orchestrator and the periodic scheduler
"""

from .base import SENTINEL_CODE, CouponRecord, RawOffer, is_real_code
from .normalizer import normalize

__all__ = [
    "SENTINEL_CODE",
    "CouponRecord",
    "RawOffer",
    "is_real_code",
    "normalize",
]
