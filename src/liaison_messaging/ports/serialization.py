"""Serializer and message-id ports used by the envelope factory."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IMessageSerializer(Protocol):
    """Turns application messages into envelope bodies and back."""

    def serialize(self, message: Any) -> bytes: ...

    def deserialize(self, raw: bytes, message_type: type[Any]) -> Any: ...


class IMessageIdGenerator(Protocol):
    """
    Protocol for message id generation strategies.
    Ids must be unique per message: the claim-check key is derived from them.
    """

    def next_id(self) -> str:
        """Generates the next unique message identifier."""
        ...
