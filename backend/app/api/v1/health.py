"""Health check endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db
from app.schemas import HealthCheckResponse
from app.services.cache_service import CacheService, get_cache

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Return service health status.

    Checks connectivity to:
    - Database
    - Redis (cache)

    The periodic scheduler is reported but does not affect the overall status.
    """
    services = {}

    # Check database connectivity
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except (SQLAlchemyError, OSError) as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status

    # Check Redis connectivity
    redis_healthy = await cache.health_check()
    redis_status = "ok" if redis_healthy else "error: ping failed"

    services["redis"] = redis_status

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_status = "running" if scheduler is not None and scheduler.is_running() else "disabled"

    # Overall status
    overall_status = "ok" if all(s == "ok" for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        redis=redis_status,
        scheduler=scheduler_status,
        services=services,
    )
