"""Payload store backends. S3 and Azure live in optional subpackages."""

from __future__ import annotations

from .keys import EXPIRES_MARKER_KEY
from .memory import MemoryPayloadStore
from .request import UploadRequest, UploadRequestBuilder

__all__ = [
    "EXPIRES_MARKER_KEY",
    "MemoryPayloadStore",
    "UploadRequest",
    "UploadRequestBuilder",
]
