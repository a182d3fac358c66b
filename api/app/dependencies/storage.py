from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status

from api.app.core.config import Settings, get_settings
from api.app.core.s3 import S3Storage, get_storage
from api.app.services.pipeline import DerivativePipeline

logger = logging.getLogger("storage")


def get_object_storage() -> S3Storage:
    try:
        return get_storage()
    except RuntimeError as exc:
        logger.error("STORAGE: unavailable err=%s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage is not configured")


def get_pipeline(
    storage: S3Storage = Depends(get_object_storage),
    settings: Settings = Depends(get_settings),
) -> DerivativePipeline:
    return DerivativePipeline(
        storage,
        max_bytes=settings.max_upload_bytes,
        max_pixels=settings.max_image_pixels,
        cleanup_partial=settings.cleanup_partial_uploads,
    )
