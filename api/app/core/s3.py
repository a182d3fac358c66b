from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from api.app.core.config import Settings, get_settings
from api.app.core.errors import ObjectNotFound, StoreError
from api.app.services.storage import StoredObject

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def make_client(s: Settings):
    if not s.storage_configured:
        raise RuntimeError("S3 is not configured: endpoint/bucket/keys are required")
    cfg = BotoConfig(
        signature_version="s3v4",
        s3={"addressing_style": "path" if s.r2_use_path_style else "auto"},
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        endpoint_url=s.r2_endpoint,
        aws_access_key_id=s.r2_access_key_id,
        aws_secret_access_key=s.r2_secret_access_key,
        region_name=s.r2_region or "auto",
        config=cfg,
    )


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3Storage:
    """ObjectStorage backed by an S3-compatible bucket (Cloudflare R2 in production).

    boto3 clients are thread-safe, so one instance is shared by all requests.
    """

    def __init__(self, client, bucket: str, *, cache_control: Optional[str] = None) -> None:
        self.client = client
        self.bucket = bucket
        self.cache_control = cache_control

    @classmethod
    def from_settings(cls, s: Settings) -> "S3Storage":
        client = make_client(s)
        assert s.r2_bucket
        return cls(client, s.r2_bucket, cache_control=s.derivative_cache_control)

    def put(self, key: str, data: bytes, content_type: str, metadata: Optional[Dict[str, str]] = None) -> None:
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        if metadata:
            extra["Metadata"] = metadata
        if self.cache_control:
            extra["CacheControl"] = self.cache_control
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"put_object failed for {key}: {type(exc).__name__}: {exc}") from exc

    def get(self, key: str) -> StoredObject:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise ObjectNotFound(f"Object not found: {key}") from exc
            raise StoreError(f"get_object failed for {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"get_object failed for {key}: {exc}") from exc
        return StoredObject(
            body=resp["Body"].iter_chunks(STREAM_CHUNK_SIZE),
            content_type=resp.get("ContentType"),
            etag=resp.get("ETag"),
            content_length=resp.get("ContentLength"),
            metadata=resp.get("Metadata") or {},
        )

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"delete_object failed for {key}: {exc}") from exc

    def presigned_url(self, key: str, expires: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"presign failed for {key}: {exc}") from exc


def public_url(key: str, s: Optional[Settings] = None) -> Optional[str]:
    s = s or get_settings()
    if not s.public_base_url:
        return None
    base = s.public_base_url.rstrip("/")
    return f"{base}/{key}"


@lru_cache(maxsize=1)
def get_storage() -> S3Storage:
    storage = S3Storage.from_settings(get_settings())
    logger.info("S3 storage ready bucket=%s endpoint=%s", storage.bucket, get_settings().r2_endpoint)
    return storage
