"""
Derivative pipeline: validate an upload, derive its storage keys, produce the
"full" and "thumbnail" WEBP renditions and store both.

The two tiers are not transactional with each other. When one tier is stored
and the other fails, the result is a failure whose ``persisted_keys`` names
the object left behind; with ``cleanup_partial`` the pipeline tries to delete
it first. Nothing here logs or retries, callers decide what to do with the
result.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from api.app.core.errors import ErrorKind, ObjectNotFound, PipelineError, StoreError
from api.app.services.storage import ObjectStorage
from api.app.utils.image_processing import FULL, THUMBNAIL, Derivative, DerivativeProfile, transcode
from api.app.utils.keys import DerivedKeys, derive_keys, now_ms
from api.app.utils.validation import DEFAULT_MAX_BYTES, normalize_content_type, validate_upload


class Stage(str, Enum):
    VALIDATION = "validation"
    TRANSCODE_FULL = "transcode-full"
    TRANSCODE_THUMBNAIL = "transcode-thumbnail"
    STORE_FULL = "store-full"
    STORE_THUMBNAIL = "store-thumbnail"


_TRANSCODE_STAGE = {FULL.name: Stage.TRANSCODE_FULL, THUMBNAIL.name: Stage.TRANSCODE_THUMBNAIL}
_STORE_STAGE = {FULL.name: Stage.STORE_FULL, THUMBNAIL.name: Stage.STORE_THUMBNAIL}


@dataclass(frozen=True)
class UploadRequest:
    original_name: str
    declared_content_type: str
    data: bytes = field(repr=False)
    owner_id: Optional[str] = None


@dataclass(frozen=True)
class PipelineSuccess:
    full_key: str
    thumb_key: str
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class PipelineFailure:
    stage: Stage
    error: PipelineError
    persisted_keys: Tuple[str, ...] = ()
    ok: bool = field(default=False, init=False)

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


PipelineResult = Union[PipelineSuccess, PipelineFailure]


class _TierFailed(Exception):
    def __init__(self, stage: Stage, error: PipelineError) -> None:
        super().__init__(stage.value)
        self.stage = stage
        self.error = error


class DerivativePipeline:
    def __init__(
        self,
        storage: ObjectStorage,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
        max_pixels: Optional[int] = None,
        cleanup_partial: bool = False,
        full_profile: DerivativeProfile = FULL,
        thumb_profile: DerivativeProfile = THUMBNAIL,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.storage = storage
        self.max_bytes = max_bytes
        self.max_pixels = max_pixels
        self.cleanup_partial = cleanup_partial
        self.full_profile = full_profile
        self.thumb_profile = thumb_profile
        self.clock = clock

    def _prepare(self, request: UploadRequest, now: Optional[int]) -> DerivedKeys:
        validate_upload(request.declared_content_type, len(request.data or b""), request.data, max_bytes=self.max_bytes)
        return derive_keys(request.original_name, now if now is not None else self.clock(), request.owner_id)

    def _metadata(self, request: UploadRequest, profile: DerivativeProfile) -> dict:
        meta = {"tier": profile.name.value}
        source_type = normalize_content_type(request.declared_content_type)
        if source_type:
            meta["source-content-type"] = source_type
        return meta

    def _run_tier(self, request: UploadRequest, profile: DerivativeProfile, key: str) -> Derivative:
        try:
            derivative = transcode(request.data, profile, max_pixels=self.max_pixels)
        except PipelineError as exc:
            raise _TierFailed(_TRANSCODE_STAGE[profile.name], exc) from exc
        try:
            self.storage.put(key, derivative.data, derivative.content_type, self._metadata(request, profile))
        except PipelineError as exc:
            raise _TierFailed(_STORE_STAGE[profile.name], exc) from exc
        return derivative

    def _partial_failure(self, failed: _TierFailed, stored: Tuple[str, ...]) -> PipelineFailure:
        left = list(stored)
        if self.cleanup_partial:
            for key in stored:
                try:
                    self.storage.delete(key)
                except ObjectNotFound:
                    pass
                except StoreError:
                    continue
                left.remove(key)
        return PipelineFailure(stage=failed.stage, error=failed.error, persisted_keys=tuple(left))

    def run(self, request: UploadRequest, now: Optional[int] = None) -> PipelineResult:
        """Blocking run; full tier first, then thumbnail."""
        try:
            keys = self._prepare(request, now)
        except PipelineError as exc:
            return PipelineFailure(stage=Stage.VALIDATION, error=exc)

        stored: Tuple[str, ...] = ()
        try:
            self._run_tier(request, self.full_profile, keys.full_key)
            stored = (keys.full_key,)
            self._run_tier(request, self.thumb_profile, keys.thumb_key)
        except _TierFailed as failed:
            return self._partial_failure(failed, stored)
        return PipelineSuccess(full_key=keys.full_key, thumb_key=keys.thumb_key)

    async def run_async(self, request: UploadRequest, now: Optional[int] = None) -> PipelineResult:
        """Both tiers in worker threads, concurrently.

        If both fail the full tier's failure is reported.
        """
        try:
            keys = self._prepare(request, now)
        except PipelineError as exc:
            return PipelineFailure(stage=Stage.VALIDATION, error=exc)

        outcomes = await asyncio.gather(
            asyncio.to_thread(self._run_tier, request, self.full_profile, keys.full_key),
            asyncio.to_thread(self._run_tier, request, self.thumb_profile, keys.thumb_key),
            return_exceptions=True,
        )
        full_outcome, thumb_outcome = outcomes
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, _TierFailed):
                raise outcome

        if isinstance(full_outcome, _TierFailed):
            stored = () if isinstance(thumb_outcome, _TierFailed) else (keys.thumb_key,)
            return await asyncio.to_thread(self._partial_failure, full_outcome, stored)
        if isinstance(thumb_outcome, _TierFailed):
            return await asyncio.to_thread(self._partial_failure, thumb_outcome, (keys.full_key,))
        return PipelineSuccess(full_key=keys.full_key, thumb_key=keys.thumb_key)
