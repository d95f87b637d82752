"""API v1 router that aggregates all sub-routers."""

from fastapi import APIRouter

from orderdesk.api.v1.orders import router as orders_router
from orderdesk.api.v1.sync import router as sync_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(orders_router)
api_router.include_router(sync_router)
