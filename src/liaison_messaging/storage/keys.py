"""Reference-path handling and metadata helpers shared by payload stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..exceptions import PayloadReferenceInvalidError

if TYPE_CHECKING:
    from collections.abc import Mapping

SEPARATOR = "/"
EXPIRES_MARKER_KEY = "liaison-expires-at"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def normalize_reference(reference: str) -> str:
    """Trim whitespace and surrounding separators; reject what is left empty."""
    if reference is None:
        raise TypeError("reference must not be None")
    trimmed = reference.strip()
    if not trimmed:
        raise PayloadReferenceInvalidError("Payload reference must be provided.")
    normalized = trimmed.strip(SEPARATOR)
    if not normalized:
        raise PayloadReferenceInvalidError(
            "Payload reference must contain non-separator characters."
        )
    return normalized


def normalize_prefix(prefix: str | None) -> str | None:
    """Normalize a configured static prefix; blank means no prefix."""
    if prefix is None or not prefix.strip():
        return None
    return prefix.strip().strip(SEPARATOR) or None


def combine_prefix(prefix: str | None, reference: str) -> str:
    """Join a normalized prefix and reference with exactly one separator."""
    if not prefix:
        return reference
    return f"{prefix}{SEPARATOR}{reference}"


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_expires_marker(expires_at: datetime) -> str:
    """ISO-8601 rendering of *expires_at* in UTC."""
    return to_utc(expires_at).isoformat()


def copy_metadata(metadata: Mapping[str, str] | None) -> dict[str, str] | None:
    if metadata is None:
        return None
    return {str(k): str(v) for k, v in metadata.items()}


def build_required_metadata(
    static_metadata: Mapping[str, str] | None,
    expires_marker: str | None,
) -> dict[str, str]:
    """Merge static metadata (lowest precedence) with the expiry marker."""
    metadata: dict[str, str] = dict(static_metadata or {})
    if expires_marker is not None:
        metadata[EXPIRES_MARKER_KEY] = expires_marker
    return metadata


def ensure_readable(payload: Any) -> None:
    """Reject stream objects that cannot be read."""
    if isinstance(payload, bytes | bytearray | memoryview):
        return
    readable = getattr(payload, "readable", None)
    if not callable(getattr(payload, "read", None)) or (
        callable(readable) and not readable()
    ):
        raise ValueError("Payload stream must be readable.")


def ensure_size_hint(size_hint: int | None) -> None:
    if size_hint is not None and size_hint < 0:
        raise ValueError("Size hint must be greater than or equal to zero.")


def resolve_content_length(payload: Any, size_hint: int | None) -> int | None:
    """Best-effort content length: the hint, else the remaining seekable length."""
    if size_hint is not None:
        return size_hint
    if isinstance(payload, bytes | bytearray | memoryview):
        return len(payload)
    seekable = getattr(payload, "seekable", None)
    if not callable(seekable) or not seekable():
        return None
    try:
        position = payload.tell()
        end = payload.seek(0, 2)
        payload.seek(position)
    except OSError:
        return None
    remaining = end - position
    return remaining if remaining >= 0 else None
