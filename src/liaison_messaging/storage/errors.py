"""HTTP-status classification and cancellation helpers shared by backends."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")

ACCESS_DENIED_STATUSES = frozenset({401, 403})


def is_access_denied(status: int | None) -> bool:
    return status in ACCESS_DENIED_STATUSES


def is_transient(status: int | None) -> bool:
    """408, 429 and every 5xx are worth retrying."""
    if status is None:
        return False
    return status in (408, 429) or 500 <= status <= 599


def ensure_not_cancelled(cancel_event: asyncio.Event | None) -> None:
    """Short-circuit before any network call when the caller already cancelled."""
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError("Operation cancelled by caller.")


def caller_cancelled(cancel_event: asyncio.Event | None) -> bool:
    """True when a CancelledError in flight originates from the caller.

    Either the caller set its cancellation signal or the current task has a
    pending ``cancel()`` request. Anything else is the transport aborting the
    call on its own.
    """
    if cancel_event is not None and cancel_event.is_set():
        return True
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


async def run_cancellable(
    call: Awaitable[T], cancel_event: asyncio.Event | None
) -> T:
    """Await a backend call, abandoning it once *cancel_event* is set.

    The call runs as its own task raced against ``cancel_event.wait()``.
    When the event wins, the call is cancelled and ``CancelledError`` is
    raised; a cancellation of the awaiting task is forwarded to the call.
    """
    if cancel_event is None:
        return await call

    work = asyncio.ensure_future(call)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if not work.done():
        work.cancel()
        await asyncio.wait({work})
        raise asyncio.CancelledError("Operation cancelled by caller.")
    return work.result()
