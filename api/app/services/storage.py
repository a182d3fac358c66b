"""
Storage port used by the upload pipeline.

Kept small and SDK-agnostic so tests can supply in-memory fakes; the S3/R2
implementation lives in api.app.core.s3.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Protocol


@dataclass
class StoredObject:
    body: Iterator[bytes]
    content_type: Optional[str] = None
    etag: Optional[str] = None
    content_length: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class ObjectStorage(Protocol):
    """Implementations raise api.app.core.errors.StoreError on failure."""

    def put(self, key: str, data: bytes, content_type: str, metadata: Optional[Dict[str, str]] = None) -> None: ...

    def get(self, key: str) -> StoredObject: ...

    def delete(self, key: str) -> None: ...


__all__ = ["ObjectStorage", "StoredObject"]
