from fastapi import APIRouter

from app.api.v1.routers import admin, assets, auth, health, share

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(assets.router)
api_router.include_router(share.router)
api_router.include_router(admin.router)

__all__ = ["api_router"]
