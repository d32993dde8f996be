"""MessageEnvelope and MessageContext: immutable transport values."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MessageEnvelope(BaseModel):
    """Immutable wrapper for a serialized message over the wire.

    Headers are copied on construction, so the envelope never aliases a
    caller-owned dict. Keys are compared ordinally (case-sensitive).
    """

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., min_length=1)
    correlation_id: str | None = None
    sent_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    body: bytes = b""
    headers: dict[str, str]

    @field_validator("message_id")
    @classmethod
    def _message_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message ID must be provided.")
        return value

    @field_validator("sent_at")
    @classmethod
    def _sent_at_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)

    def replace(
        self,
        *,
        body: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> MessageEnvelope:
        """Return a new validated envelope with the same identity and timestamp."""
        return MessageEnvelope(
            message_id=self.message_id,
            correlation_id=self.correlation_id,
            sent_at=self.sent_at,
            body=self.body if body is None else bytes(body),
            headers=dict(self.headers if headers is None else headers),
        )


class MessageContext(BaseModel):
    """Per-delivery context handed to message and request handlers."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., min_length=1)
    correlation_id: str | None = None
    headers: dict[str, str]

    @classmethod
    def from_envelope(cls, envelope: MessageEnvelope) -> MessageContext:
        return cls(
            message_id=envelope.message_id,
            correlation_id=envelope.correlation_id,
            headers=dict(envelope.headers),
        )
