"""InMemoryRequestClient: request/reply against a single in-process handler."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..envelope import MessageContext
from ..factory import MessageEnvelopeFactory
from ..reply import Reply, ReplyStatus
from ..serialization import JsonMessageSerializer
from ..timeouts import FixedRequestTimeoutPolicy
from ._claim_check import ClaimCheck

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..ports.large_payload import ILargePayloadPolicy
    from ..ports.messaging import IRequestHandler, IRequestTimeoutPolicy
    from ..ports.payload_store import IPayloadStore
    from ..ports.serialization import IMessageSerializer

logger = logging.getLogger("liaison.transport")

TRequest = TypeVar("TRequest")
TReply = TypeVar("TReply")


class InMemoryRequestClient(Generic[TRequest, TReply]):
    """
    Request client that calls its handler directly.

    Handler outcomes are reported as a :class:`Reply`: ``ValueError`` becomes
    ``VALIDATION_ERROR``, an elapsed timeout or caller cancellation becomes
    ``TIMEOUT`` and anything else ``FAILURE``. Claim-check failures while
    preparing the request propagate to the caller.
    """

    def __init__(
        self,
        handler: IRequestHandler[TRequest, TReply],
        timeout_policy: IRequestTimeoutPolicy | None = None,
        *,
        serializer: IMessageSerializer | None = None,
        envelope_factory: MessageEnvelopeFactory | None = None,
        large_payload_policy: ILargePayloadPolicy | None = None,
        payload_store: IPayloadStore | None = None,
    ) -> None:
        if handler is None:
            raise ValueError("handler must be provided.")
        self._handler = handler
        self._timeout_policy = timeout_policy or FixedRequestTimeoutPolicy()
        self._claim_check = ClaimCheck(large_payload_policy, payload_store)
        self._envelope_factory = envelope_factory or MessageEnvelopeFactory(
            serializer or JsonMessageSerializer()
        )

    async def send(
        self,
        request: TRequest,
        headers: Mapping[str, str] | None = None,
        correlation_id: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Reply[TReply]:
        timeout = self._timeout_policy.get_timeout()
        if timeout is not None and timeout < 0:
            return Reply(
                status=ReplyStatus.FAILURE,
                error="Timeout policy returned an invalid timeout.",
            )

        envelope = self._envelope_factory.create(request, headers, correlation_id)
        transmitted = await self._claim_check.outbound(envelope, cancel_event)
        received = await self._claim_check.inbound(transmitted, cancel_event)
        context = MessageContext.from_envelope(received)

        if cancel_event is not None and cancel_event.is_set():
            return Reply(status=ReplyStatus.TIMEOUT, error="Request was cancelled.")

        handler_task = asyncio.ensure_future(self._handler.handle(request, context))
        waiters: set[asyncio.Future[Any]] = {handler_task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            handler_task.cancel()
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if handler_task not in done:
            handler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await handler_task
            reason = "cancelled" if cancel_waiter in done else "timed out"
            logger.debug("Request %s %s", envelope.message_id, reason)
            return Reply(status=ReplyStatus.TIMEOUT, error=f"Request {reason}.")

        try:
            value = handler_task.result()
        except ValueError as exc:
            return Reply(status=ReplyStatus.VALIDATION_ERROR, error=str(exc))
        except TimeoutError as exc:
            return Reply(status=ReplyStatus.TIMEOUT, error=str(exc) or "Request timed out.")
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Request handler failed for message %s: %s", envelope.message_id, exc
            )
            return Reply(status=ReplyStatus.FAILURE, error=str(exc))
        return Reply(status=ReplyStatus.SUCCESS, value=value)
