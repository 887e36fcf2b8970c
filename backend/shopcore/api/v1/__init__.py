"""API version 1 routers."""

from fastapi import APIRouter

from shopcore.api.v1.admin import router as admin_router
from shopcore.api.v1.cart import router as cart_router
from shopcore.api.v1.orders import router as orders_router

api_router = APIRouter()
api_router.include_router(cart_router)
api_router.include_router(orders_router)
api_router.include_router(admin_router)

__all__ = ["api_router"]
