"""
Error taxonomy for the upload pipeline.

Every failure carries an ErrorKind so the HTTP layer can choose a status code
and decide whether the message is safe to show to the client.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    EMPTY_UPLOAD = "EmptyUpload"
    UNSUPPORTED_TYPE = "UnsupportedType"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    DECODE_ERROR = "DecodeError"
    ENCODE_ERROR = "EncodeError"
    STORE_ERROR = "StoreError"


CLIENT_ERROR_KINDS = frozenset(
    {
        ErrorKind.EMPTY_UPLOAD,
        ErrorKind.UNSUPPORTED_TYPE,
        ErrorKind.PAYLOAD_TOO_LARGE,
        ErrorKind.DECODE_ERROR,
    }
)


class PipelineError(Exception):
    kind: ErrorKind = ErrorKind.STORE_ERROR

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def is_client_error(self) -> bool:
        return self.kind in CLIENT_ERROR_KINDS

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}: {self.message!r})"


class UploadRejected(PipelineError):
    """Raised by the validator; the message is shown to the client as-is."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message, kind=kind)


class DecodeError(PipelineError):
    kind = ErrorKind.DECODE_ERROR


class EncodeError(PipelineError):
    kind = ErrorKind.ENCODE_ERROR


class StoreError(PipelineError):
    kind = ErrorKind.STORE_ERROR


class ObjectNotFound(StoreError):
    pass
