from fastapi import APIRouter

from api.app.api.api_v1.routers.health import router as health_router
from api.app.api.api_v1.routers.media import router as media_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(media_router)
