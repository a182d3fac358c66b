from api.app.schemas.media import (
    ErrorResponse,
    HealthResponse,
    SignedUrlResponse,
    UploadResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "SignedUrlResponse",
    "UploadResponse",
]
