"""IPayloadStore: port for externally persisted message payloads."""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    import asyncio
    from datetime import datetime

    from ..streams import PayloadStream

PayloadSource: TypeAlias = "bytes | bytearray | memoryview | BinaryIO"


@runtime_checkable
class IPayloadStore(Protocol):
    """
    Transport-agnostic store for externalized message bodies.

    Every failure is raised as a :class:`~liaison_messaging.exceptions.PayloadStoreError`
    subclass; backend-specific exceptions never escape an implementation.
    An already-set *cancel_event* aborts the call with ``asyncio.CancelledError``
    before any network traffic.
    """

    async def upload(
        self,
        payload: PayloadSource,
        key_prefix: str,
        size_hint: int | None = None,
        expires_at: datetime | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """
        Upload *payload* and return an opaque reference for later download.

        Args:
            payload: Bytes or a readable binary stream (may be unseekable).
            key_prefix: Provider-agnostic key used to build the reference.
            size_hint: Optional content length (>= 0); an optimization only.
            expires_at: Optional UTC expiry, recorded as metadata only.
            cancel_event: Optional caller cancellation signal.
        """
        ...

    async def download(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PayloadStream:
        """Open the payload stored under *reference*."""
        ...

    async def delete(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Delete *reference*. Deleting a missing reference is not an error."""
        ...
