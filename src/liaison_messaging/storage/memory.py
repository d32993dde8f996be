"""MemoryPayloadStore: process-local IPayloadStore for tests and development."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..exceptions import PayloadNotFoundError
from ..streams import BytesPayloadStream, PayloadStream
from .errors import ensure_not_cancelled
from .keys import (
    ensure_readable,
    ensure_size_hint,
    format_expires_marker,
    normalize_reference,
    to_utc,
)

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable

    from ..ports.payload_store import PayloadSource

logger = logging.getLogger("liaison.payload_store")


@dataclass(frozen=True)
class _StoredPayload:
    data: bytes
    expires_at: datetime | None


class MemoryPayloadStore:
    """
    In-memory implementation of IPayloadStore.

    Each upload gets a fresh ``<key_prefix>/<uuid>`` reference. Expired
    entries are removed lazily when read; there is no eviction policy.
    """

    def __init__(self, utc_now: Callable[[], datetime] | None = None) -> None:
        self._entries: dict[str, _StoredPayload] = {}
        self._utc_now = utc_now or (lambda: datetime.now(timezone.utc))

    async def upload(
        self,
        payload: PayloadSource,
        key_prefix: str,
        size_hint: int | None = None,
        expires_at: datetime | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        ensure_readable(payload)
        ensure_size_hint(size_hint)
        ensure_not_cancelled(cancel_event)
        prefix = normalize_reference(key_prefix)

        if isinstance(payload, bytes | bytearray | memoryview):
            data = bytes(payload)
        else:
            data = bytes(payload.read())

        reference = f"{prefix}/{uuid.uuid4().hex}"
        self._entries[reference] = _StoredPayload(
            data, to_utc(expires_at) if expires_at is not None else None
        )
        logger.debug(
            "Stored payload %s (%d bytes, expires %s)",
            reference,
            len(data),
            format_expires_marker(expires_at) if expires_at is not None else "never",
        )
        return reference

    async def download(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PayloadStream:
        reference = normalize_reference(reference)
        ensure_not_cancelled(cancel_event)

        entry = self._entries.get(reference)
        if entry is None:
            raise PayloadNotFoundError(reference)
        if entry.expires_at is not None and entry.expires_at <= to_utc(
            self._utc_now()
        ):
            self._entries.pop(reference, None)
            raise PayloadNotFoundError(
                reference, f"Payload reference '{reference}' has expired."
            )
        return BytesPayloadStream(entry.data)

    async def delete(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        reference = normalize_reference(reference)
        ensure_not_cancelled(cancel_event)
        self._entries.pop(reference, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, reference: object) -> bool:
        return reference in self._entries
