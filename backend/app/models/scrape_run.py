"""Scrape run tracking."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, UUIDPrimaryKeyMixin


class ScrapeRun(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of one full scrape across a set of categories."""

    __tablename__ = "scrape_runs"

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="running",
        index=True,
        comment="Status: 'running', 'completed', 'failed'"
    )
    categories: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    domains_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    domains_succeeded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    domains_empty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    domains_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    coupons_saved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_traceback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Per-category breakdown
    summary: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<ScrapeRun(id={self.id}, status='{self.status}', categories='{self.categories}')>"
