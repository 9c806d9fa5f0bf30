from fastapi import APIRouter

from . import broadcast, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(broadcast.router)
