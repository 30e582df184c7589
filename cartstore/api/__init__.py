# cartstore/api/__init__.py
from fastapi import APIRouter

from cartstore.api.routers import admin, carts, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(carts.router)
api_router.include_router(admin.router)
