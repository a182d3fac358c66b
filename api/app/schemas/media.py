from __future__ import annotations

from pydantic import BaseModel


class UploadResponse(BaseModel):
    success: bool = True
    fullKey: str
    thumbKey: str
    fullUrl: str | None = None
    thumbUrl: str | None = None


class SignedUrlResponse(BaseModel):
    success: bool = True
    url: str
    expiresIn: int


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class HealthResponse(BaseModel):
    ok: bool = True
    ts: int
