"""InMemoryPubSub: publish/subscribe with synchronous fan-out for tests."""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..envelope import MessageContext, MessageEnvelope
from ..factory import MessageEnvelopeFactory
from ..serialization import JsonMessageSerializer
from ..storage.errors import ensure_not_cancelled
from ._claim_check import ClaimCheck

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping
    from types import TracebackType

    from ..ports.large_payload import ILargePayloadPolicy
    from ..ports.messaging import IMessageHandler
    from ..ports.payload_store import IPayloadStore
    from ..ports.serialization import IMessageSerializer

logger = logging.getLogger("liaison.transport")

T = TypeVar("T")


class InMemorySubscription:
    """Removes its handler on close(); closing twice is a no-op."""

    def __init__(self, handlers: dict[int, Any], handler_id: int) -> None:
        self._handlers = handlers
        self._handler_id = handler_id
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._handlers.pop(self._handler_id, None)

    async def __aenter__(self) -> InMemorySubscription:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class InMemoryPubSub(Generic[T]):
    """In-memory publisher that invokes subscribed handlers in subscription order.

    Every publish builds an envelope, runs it through the claim-check policy
    (when configured) as if it crossed a broker, and hands handlers a
    context derived from the received envelope. ``get_published()`` returns
    the envelopes as they were "transmitted".
    """

    def __init__(
        self,
        serializer: IMessageSerializer | None = None,
        *,
        envelope_factory: MessageEnvelopeFactory | None = None,
        large_payload_policy: ILargePayloadPolicy | None = None,
        payload_store: IPayloadStore | None = None,
    ) -> None:
        self._claim_check = ClaimCheck(large_payload_policy, payload_store)
        self._envelope_factory = envelope_factory or MessageEnvelopeFactory(
            serializer or JsonMessageSerializer()
        )
        self._handlers: dict[int, IMessageHandler[T]] = {}
        self._ids = itertools.count(1)
        self._published: list[MessageEnvelope] = []

    def subscribe(self, handler: IMessageHandler[T]) -> InMemorySubscription:
        """Register *handler*; close the returned subscription to remove it."""
        if handler is None:
            raise ValueError("handler must be provided.")
        handler_id = next(self._ids)
        self._handlers[handler_id] = handler
        return InMemorySubscription(self._handlers, handler_id)

    async def publish(
        self,
        message: T,
        headers: Mapping[str, str] | None = None,
        correlation_id: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Publish *message* to every current subscriber."""
        if message is None:
            raise ValueError("message must be provided.")

        envelope = self._envelope_factory.create(message, headers, correlation_id)
        transmitted = await self._claim_check.outbound(envelope, cancel_event)
        self._published.append(transmitted)
        received = await self._claim_check.inbound(transmitted, cancel_event)
        context = MessageContext.from_envelope(received)

        snapshot = sorted(self._handlers.items())
        logger.debug(
            "Publishing message %s to %d handler(s)", envelope.message_id, len(snapshot)
        )
        for _, handler in snapshot:
            ensure_not_cancelled(cancel_event)
            await handler.handle(message, context)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def get_published(self) -> list[MessageEnvelope]:
        """Return all transmitted envelopes in order."""
        return list(self._published)

    def clear(self) -> None:
        """Clear published envelopes and handlers (for test teardown)."""
        self._published.clear()
        self._handlers.clear()
