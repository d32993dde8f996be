from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from ..envelope import MessageContext

TMessage = TypeVar("TMessage", contravariant=True)
TRequest = TypeVar("TRequest", contravariant=True)
TReply = TypeVar("TReply", covariant=True)


@runtime_checkable
class IMessageHandler(Protocol[TMessage]):
    """
    Handler for published messages.

    Transports call it once per delivery with the message and its context.
    """

    async def handle(self, message: TMessage, context: MessageContext) -> None: ...


@runtime_checkable
class IRequestHandler(Protocol[TRequest, TReply]):
    """
    Handler for request/reply exchanges.

    Raising ``ValueError`` is reported to the caller as a validation error.
    """

    async def handle(self, request: TRequest, context: MessageContext) -> TReply: ...


class IRequestTimeoutPolicy(Protocol):
    """Supplies the timeout for a request/reply exchange."""

    def get_timeout(self) -> float | None:
        """Timeout in seconds, or ``None`` to wait indefinitely."""
        ...


@runtime_checkable
class IMessageSubscription(Protocol):
    """Handle returned by subscribe(); closing it removes the handler."""

    async def close(self) -> None: ...
