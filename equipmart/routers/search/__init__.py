"""Search endpoints."""

from fastapi import APIRouter

from equipmart.routers.search.analytics import router as analytics_router
from equipmart.routers.search.listings import router as listings_router

router = APIRouter()
router.include_router(listings_router)
router.include_router(analytics_router)

__all__ = ["router"]
