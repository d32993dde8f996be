"""S3 payload store (optional extra: liaison-messaging[s3])."""

from __future__ import annotations

from .connection import S3ConnectionManager
from .store import S3PayloadStore, S3PayloadStoreOptions

__all__ = [
    "S3ConnectionManager",
    "S3PayloadStore",
    "S3PayloadStoreOptions",
]
