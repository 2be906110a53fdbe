"""Coupon model: one row per (domain, code)."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Coupon(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A coupon code scraped for a merchant domain.

    Rows are only ever written through an upsert on (domain, code), so
    re-running a scrape refreshes existing rows instead of duplicating them.
    """

    __tablename__ = "coupons"
    __table_args__ = (
        UniqueConstraint("domain", "code", name="uq_coupons_domain_code"),
    )

    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True, comment="Merchant domain (e.g. 'acme.com')")
    code: Mapped[str] = mapped_column(String(255), nullable=False, comment="Literal coupon code")
    discount: Mapped[str] = mapped_column(String(500), nullable=False, default="Discount")
    terms: Mapped[str] = mapped_column(Text, nullable=False, default="Terms apply")
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Verified flag from the most recent scrape",
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="When a scrape last observed this code",
    )

    def __repr__(self) -> str:
        return f"<Coupon(domain='{self.domain}', code='{self.code}', verified={self.verified})>"
