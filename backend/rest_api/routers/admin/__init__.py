"""
Admin API router - combines the admin sub-routers.

- orders: order detail and status changes

All routes are prefixed with /api/admin. Kitchen tickets live in
rest_api.routers.kitchen under /api/admin/kitchen-tickets.
"""

from fastapi import APIRouter

from .orders import router as orders_router


router = APIRouter(prefix="/api/admin")

router.include_router(orders_router)

__all__ = ["router"]
