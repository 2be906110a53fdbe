"""SQLAlchemy models for Nectar.

All models are imported here so metadata.create_all can discover them.
"""

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from app.models.coupon import Coupon
from app.models.scrape_run import ScrapeRun

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Coupon",
    "ScrapeRun",
]
