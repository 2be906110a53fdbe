"""FastAPI dependency injection providers."""

from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import async_session_factory
from app.scrapers.on_demand import OnDemandScraper


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.

    Usage:
        @router.get("/coupons/{domain}")
        async def get_coupons(domain: str, db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_on_demand_scraper(request: Request) -> Optional[OnDemandScraper]:
    """The application's on-demand scraper, or None when disabled."""
    return getattr(request.app.state, "on_demand_scraper", None)
