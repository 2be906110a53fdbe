"""Services module for persistence and caching.

This module contains the coupon persistence sinks and lookups, and the
Redis cache used by the API.
"""

from app.services.coupon_service import (
    CouponService,
    CouponSink,
    DatabaseCouponSink,
    LoggingCouponSink,
    UpsertResult,
    normalize_domain,
)

__all__ = [
    "CouponService",
    "CouponSink",
    "DatabaseCouponSink",
    "LoggingCouponSink",
    "UpsertResult",
    "normalize_domain",
]
