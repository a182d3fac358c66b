from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from api.app.schemas.media import HealthResponse
from api.app.utils.keys import now_ms

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz():
    return HealthResponse(ts=now_ms())


@router.get("/", response_class=PlainTextResponse)
async def root():
    return "R2 image compressor is running."
