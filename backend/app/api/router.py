"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from app.api import health, generations, assets, me, admin

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(generations.router, prefix="/generations", tags=["generations"])
api_router.include_router(assets.router, prefix="/assets", tags=["assets"])
api_router.include_router(me.router, prefix="/me", tags=["me"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
