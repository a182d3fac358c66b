from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from api.app.core.config import Settings, get_settings
from api.app.core.errors import ObjectNotFound, StoreError
from api.app.core.s3 import S3Storage, public_url
from api.app.dependencies.storage import get_object_storage, get_pipeline
from api.app.schemas.media import ErrorResponse, SignedUrlResponse, UploadResponse
from api.app.services.pipeline import DerivativePipeline, PipelineFailure, Stage, UploadRequest
from api.app.utils.image_processing import OUTPUT_CONTENT_TYPE
from api.app.utils.keys import is_allowed_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])

SERVER_ERROR = "Server error"
NOT_AN_IMAGE = "Uploaded file is not a decodable image"
_ERRORS = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _raise_for_failure(result: PipelineFailure, filename: str) -> None:
    err = result.error
    if result.persisted_keys:
        logger.warning(
            "UPLOAD: partial write stage=%s file=%s orphaned=%s",
            result.stage.value,
            filename,
            ",".join(result.persisted_keys),
        )
    if err.is_client_error:
        logger.info("UPLOAD: rejected stage=%s kind=%s file=%s msg=%s", result.stage.value, err.kind.value, filename, err)
        detail = err.message if result.stage is Stage.VALIDATION else NOT_AN_IMAGE
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    logger.error(
        "UPLOAD: failed stage=%s kind=%s file=%s err=%s",
        result.stage.value,
        err.kind.value,
        filename,
        err,
        exc_info=err,
    )
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=SERVER_ERROR)


@router.post("/", response_model=UploadResponse, responses=_ERRORS)
async def upload_image(
    file: UploadFile | None = File(None),
    owner_id: str | None = Form(None),
    pipeline: DerivativePipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    try:
        # one byte past the limit is enough to know it is too large
        content = await file.read(settings.max_upload_bytes + 1)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to read file") from exc
    finally:
        await file.close()

    request = UploadRequest(
        original_name=file.filename or "",
        declared_content_type=file.content_type or "",
        data=content,
        owner_id=owner_id,
    )
    if settings.concurrent_derivatives:
        result = await pipeline.run_async(request)
    else:
        result = await run_in_threadpool(pipeline.run, request)

    if not result.ok:
        _raise_for_failure(result, request.original_name)

    logger.info("UPLOAD: ok file=%s size=%d full=%s thumb=%s", request.original_name, len(content), result.full_key, result.thumb_key)
    return UploadResponse(
        fullKey=result.full_key,
        thumbKey=result.thumb_key,
        fullUrl=public_url(result.full_key, settings),
        thumbUrl=public_url(result.thumb_key, settings),
    )


def _parse_expires(raw: str | None, settings: Settings) -> int:
    try:
        value = int(float(raw)) if raw else 0
    except (ValueError, OverflowError):
        value = 0
    if value <= 0:
        value = settings.signed_url_default_expires
    return min(value, settings.signed_url_max_expires)


def _checked_key(key: str | None) -> str:
    if not key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing key")
    if not is_allowed_key(key):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid key")
    return key


@router.get("/signed-url", response_model=SignedUrlResponse, responses=_ERRORS)
async def signed_url(
    key: str | None = Query(None),
    expires: str | None = Query(None),
    storage: S3Storage = Depends(get_object_storage),
    settings: Settings = Depends(get_settings),
):
    key = _checked_key(key)
    ttl = _parse_expires(expires, settings)
    try:
        url = storage.presigned_url(key, ttl)
    except StoreError as exc:
        logger.error("SIGNED-URL: failed key=%s err=%s", key, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=SERVER_ERROR) from exc
    return SignedUrlResponse(url=url, expiresIn=ttl)


@router.get("/image", responses={**_ERRORS, 404: {"model": ErrorResponse}})
async def image_proxy(
    key: str | None = Query(None),
    storage: S3Storage = Depends(get_object_storage),
    settings: Settings = Depends(get_settings),
):
    key = _checked_key(key)
    try:
        obj = await run_in_threadpool(storage.get, key)
    except ObjectNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found") from exc
    except StoreError as exc:
        logger.error("IMAGE: proxy failed key=%s err=%s", key, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=SERVER_ERROR) from exc

    max_age = settings.image_cache_seconds
    headers = {"Cache-Control": f"public, max-age={max_age}, s-maxage={max_age}"}
    if obj.etag:
        headers["ETag"] = obj.etag
    if obj.content_length is not None:
        headers["Content-Length"] = str(obj.content_length)
    return StreamingResponse(obj.body, media_type=obj.content_type or OUTPUT_CONTENT_TYPE, headers=headers)
