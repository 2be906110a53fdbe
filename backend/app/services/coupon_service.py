"""Coupon persistence: the idempotent upsert sink and domain lookups."""

import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.coupon import Coupon
from app.scrapers.base import CouponRecord

logger = structlog.get_logger(__name__)

_DOMAIN_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)+$")


def normalize_domain(value: str) -> Optional[str]:
    """Reduce user input such as ``https://www.Acme.com/deals`` to ``acme.com``.

    Returns:
        The bare lowercase host, or None if it is not a plausible domain
    """
    host = value.strip().lower()
    host = re.sub(r"^[a-z][a-z0-9+.-]*://", "", host)
    host = re.split(r"[/?#]", host, maxsplit=1)[0]
    host = host.split("@")[-1].split(":")[0].rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    if len(host) > 253 or not _DOMAIN_PATTERN.match(host):
        return None
    return host


@dataclass
class UpsertResult:
    """Outcome of one sink write."""

    ok: bool
    written: int = 0
    reason: Optional[str] = None


class CouponService:
    """Database operations on the coupons table."""

    def __init__(self, db: AsyncSession):
        """Initialize coupon service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="coupon_service")

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(Coupon)
        if dialect == "sqlite":
            return sqlite_insert(Coupon)
        raise NotImplementedError(f"Upsert not supported for dialect: {dialect}")

    async def upsert_coupons(self, records: Sequence[CouponRecord]) -> int:
        """Insert or refresh coupons keyed on (domain, code).

        Existing rows get the latest discount, terms and verified flag and a
        new last_seen_at; nothing is ever duplicated. Does not commit.

        Args:
            records: Normalized coupon records

        Returns:
            Number of rows written (inserted or updated)
        """
        unique: Dict[Tuple[str, str], CouponRecord] = {}
        for record in records:
            unique[record.key] = record
        if not unique:
            return 0

        rows = [{"id": uuid.uuid4(), **record.to_row()} for record in unique.values()]
        stmt = self._insert().values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Coupon.domain, Coupon.code],
            set_={
                "discount": stmt.excluded.discount,
                "terms": stmt.excluded.terms,
                "verified": stmt.excluded.verified,
                "last_seen_at": func.now(),
                "updated_at": func.now(),
            },
        )
        await self.db.execute(stmt)

        self.logger.debug("coupons_upserted", count=len(rows))
        return len(rows)

    async def get_coupons_for_domain(self, domain: str) -> List[Coupon]:
        """All stored coupons for a domain, verified first then most recent."""
        result = await self.db.execute(
            select(Coupon)
            .where(Coupon.domain == domain)
            .order_by(Coupon.verified.desc(), Coupon.last_seen_at.desc(), Coupon.code)
        )
        return list(result.scalars().all())

    async def count_coupons(self, domain: Optional[str] = None) -> int:
        query = select(func.count(Coupon.id))
        if domain is not None:
            query = query.where(Coupon.domain == domain)
        result = await self.db.execute(query)
        return result.scalar() or 0


class CouponSink(ABC):
    """Where normalized coupons go at the end of a domain's pipeline."""

    @abstractmethod
    async def upsert(self, records: Sequence[CouponRecord]) -> UpsertResult:
        """Persist records idempotently. Must not raise on write failures."""


class DatabaseCouponSink(CouponSink):
    """Sink writing each batch in its own session and transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def upsert(self, records: Sequence[CouponRecord]) -> UpsertResult:
        if not records:
            return UpsertResult(ok=True)

        domains = sorted({r.domain for r in records})
        try:
            async with self.session_factory() as db:
                written = await CouponService(db).upsert_coupons(records)
                await db.commit()
        except (SQLAlchemyError, OSError) as e:
            # asyncpg raises OSError unwrapped when the server refuses the connection
            logger.error("coupon_upsert_failed", domains=domains, count=len(records), error=str(e))
            return UpsertResult(ok=False, reason=str(e))

        logger.info("coupons_saved", domains=domains, count=written)
        return UpsertResult(ok=True, written=written)


class LoggingCouponSink(CouponSink):
    """Dry-run sink: logs what would be saved and keeps it in memory."""

    def __init__(self):
        self.records: List[CouponRecord] = []

    async def upsert(self, records: Sequence[CouponRecord]) -> UpsertResult:
        for record in records:
            logger.info(
                "dry_run_coupon",
                domain=record.domain,
                code=record.code,
                verified=record.verified,
                discount=record.discount,
            )
        self.records.extend(records)
        return UpsertResult(ok=True, written=len(records))
