"""Pydantic schemas for the coupon API.

All response models are defined here for easy import.
"""

from app.schemas.coupon import CouponResponse, DomainCouponsResponse
from app.schemas.health import HealthCheckResponse

__all__ = [
    # Coupon
    "CouponResponse",
    "DomainCouponsResponse",
    # Health
    "HealthCheckResponse",
]
