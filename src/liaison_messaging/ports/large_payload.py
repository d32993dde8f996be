"""ILargePayloadPolicy: port for claim-check externalization."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import asyncio
    from datetime import datetime

    from ..envelope import MessageEnvelope
    from .payload_store import IPayloadStore


@runtime_checkable
class ILargePayloadPolicy(Protocol):
    """
    Applies large-payload externalization to outbound and inbound envelopes.
    """

    @property
    def threshold_bytes(self) -> int:
        """Body size above which outbound payloads are externalized."""
        ...

    @property
    def use_compression(self) -> bool:
        """Whether externalized uploads are gzip-compressed."""
        ...

    async def prepare_outbound(
        self,
        envelope: MessageEnvelope,
        store: IPayloadStore,
        expires_at: datetime | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> MessageEnvelope:
        """Return a new envelope, externalizing the body when over threshold."""
        ...

    async def resolve_inbound(
        self,
        envelope: MessageEnvelope,
        store: IPayloadStore,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> MessageEnvelope:
        """Return a new envelope with an externalized body restored inline."""
        ...
