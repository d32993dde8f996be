"""Shared claim-check wiring for the in-memory transports."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import MessagingConfigurationError

if TYPE_CHECKING:
    import asyncio

    from ..envelope import MessageEnvelope
    from ..ports.large_payload import ILargePayloadPolicy
    from ..ports.payload_store import IPayloadStore


class ClaimCheck:
    """Applies a large payload policy on send and on receive.

    A policy and a store are both required or both omitted.
    """

    def __init__(
        self,
        policy: ILargePayloadPolicy | None,
        store: IPayloadStore | None,
    ) -> None:
        if (policy is None) != (store is None):
            raise MessagingConfigurationError(
                "Large payload policy and payload store must both be provided or both be None."
            )
        self._policy = policy
        self._store = store

    @property
    def enabled(self) -> bool:
        return self._policy is not None

    async def outbound(
        self, envelope: MessageEnvelope, cancel_event: asyncio.Event | None = None
    ) -> MessageEnvelope:
        if self._policy is None or self._store is None:
            return envelope
        return await self._policy.prepare_outbound(
            envelope, self._store, cancel_event=cancel_event
        )

    async def inbound(
        self, envelope: MessageEnvelope, cancel_event: asyncio.Event | None = None
    ) -> MessageEnvelope:
        if self._policy is None or self._store is None:
            return envelope
        return await self._policy.resolve_inbound(
            envelope, self._store, cancel_event=cancel_event
        )
