"""Coupon lookup endpoint."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dependencies import get_db, get_on_demand_scraper
from app.schemas import CouponResponse, DomainCouponsResponse
from app.scrapers.on_demand import OnDemandScraper
from app.scrapers.scraper_service import FAILED
from app.services.cache_service import CacheService, cache_key_for_domain, get_cache
from app.services.coupon_service import CouponService, normalize_domain

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/{domain:path}", response_model=DomainCouponsResponse)
async def get_domain_coupons(
    domain: str,
    scrape: bool = Query(True, description="Scrape the domain now if nothing is stored"),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    scraper: Optional[OnDemandScraper] = Depends(get_on_demand_scraper),
):
    """Get the coupon codes known for a merchant domain.

    Accepts a bare domain or a URL (``https://www.acme.com/cart``). Verified
    codes come first.

    Responses are cached for COUPON_CACHE_TTL seconds. When the database has
    nothing for the domain, the domain is scraped on the spot (unless
    ``scrape=false`` or on-demand scraping is disabled).
    """
    normalized = normalize_domain(domain)
    if normalized is None:
        raise HTTPException(status_code=422, detail=f"Invalid domain: '{domain}'")

    cache_key = cache_key_for_domain(normalized)
    cached = await cache.get(cache_key)
    if cached:
        response = DomainCouponsResponse.model_validate_json(cached)
        response.source = "cache"
        return response

    coupons = await CouponService(db).get_coupons_for_domain(normalized)
    if coupons:
        response = DomainCouponsResponse(
            domain=normalized,
            source="database",
            count=len(coupons),
            coupons=[CouponResponse.model_validate(c) for c in coupons],
        )
        await cache.set(cache_key, response.model_dump_json(), ttl=settings.COUPON_CACHE_TTL)
        return response

    if not (scrape and settings.ON_DEMAND_SCRAPE and scraper is not None):
        return DomainCouponsResponse(domain=normalized, source="database", count=0)

    logger.info("on_demand_scrape", domain=normalized)
    outcome = await scraper.scrape(normalized)
    if outcome.status == FAILED:
        raise HTTPException(status_code=502, detail=f"Scraping '{normalized}' failed: {outcome.error}")

    response = DomainCouponsResponse(
        domain=normalized,
        source="scrape",
        count=len(outcome.records),
        coupons=[
            CouponResponse(
                domain=r.domain,
                code=r.code,
                discount=r.discount,
                terms=r.terms,
                verified=r.verified,
            )
            for r in outcome.records
        ],
    )
    if response.coupons:
        await cache.set(cache_key, response.model_dump_json(), ttl=settings.COUPON_CACHE_TTL)
    return response
