"""MessageEnvelopeFactory and the default message id generator."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .envelope import MessageEnvelope

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .ports.serialization import IMessageIdGenerator, IMessageSerializer


class UUIDMessageIdGenerator:
    """
    Default message id generator using UUIDv4.
    Ids are the 32-character hex form, safe inside storage keys.
    """

    def next_id(self) -> str:
        """Returns the hex representation of a random UUIDv4."""
        return uuid.uuid4().hex


class MessageEnvelopeFactory:
    """Creates immutable envelopes from application messages."""

    def __init__(
        self,
        serializer: IMessageSerializer,
        id_generator: IMessageIdGenerator | None = None,
    ) -> None:
        if serializer is None:
            raise ValueError("serializer must be provided.")
        self._serializer = serializer
        self._id_generator = id_generator or UUIDMessageIdGenerator()

    def create(
        self,
        message: Any,
        headers: Mapping[str, str] | None = None,
        correlation_id: str | None = None,
        sent_at: datetime | None = None,
    ) -> MessageEnvelope:
        """Serialize *message* and wrap it with a fresh id and UTC timestamp."""
        return MessageEnvelope(
            message_id=self._id_generator.next_id(),
            correlation_id=correlation_id,
            sent_at=sent_at or datetime.now(timezone.utc),
            body=self._serializer.serialize(message),
            headers=dict(headers or {}),
        )
