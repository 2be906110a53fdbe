"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import coupons, health

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(coupons.router, prefix="/coupons", tags=["coupons"])
