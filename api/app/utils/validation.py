from __future__ import annotations

from api.app.core.errors import ErrorKind, UploadRejected

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/avif",
        "image/heic",
        "image/heif",
    }
)
DEFAULT_MAX_BYTES = 15 * 1024 * 1024


def normalize_content_type(value: str | None) -> str:
    """'Image/JPEG; charset=binary' -> 'image/jpeg'."""
    return (value or "").split(";", 1)[0].strip().lower()


def validate_upload(
    declared_content_type: str | None,
    byte_length: int,
    data: bytes | None,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> None:
    """Accept (return None) or reject (raise UploadRejected) an upload.

    An empty declared type is tolerated: undecodable bytes are caught later by
    the transcoder.
    """
    if byte_length <= 0 or not data:
        raise UploadRejected(ErrorKind.EMPTY_UPLOAD, "No file uploaded")

    content_type = normalize_content_type(declared_content_type)
    if content_type and content_type not in ALLOWED_CONTENT_TYPES:
        raise UploadRejected(ErrorKind.UNSUPPORTED_TYPE, f"Unsupported content type: {declared_content_type}")

    if byte_length > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        raise UploadRejected(ErrorKind.PAYLOAD_TOO_LARGE, f"File is too large (max {max_mb:g} MB)")
