"""Coupon Pydantic schemas for API responses."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class CouponResponse(BaseModel):
    """One coupon code for a merchant domain."""

    model_config = ConfigDict(from_attributes=True)

    domain: str
    code: str
    discount: str
    terms: str
    verified: bool
    last_seen_at: Optional[datetime] = None


class DomainCouponsResponse(BaseModel):
    """Coupons for a domain and where they were served from."""

    domain: str
    source: Literal["cache", "database", "scrape"]
    count: int
    coupons: List[CouponResponse] = []
