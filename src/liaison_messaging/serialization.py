"""JsonMessageSerializer: JSON bodies for application messages."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import MessagingSerializationError


def _json_default(obj: Any) -> Any:
    """Serialize datetime, pydantic models and other non-JSON types."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class JsonMessageSerializer:
    """Serialize messages to UTF-8 JSON bytes and back.

    Pydantic models round-trip through ``model_dump_json`` /
    ``model_validate_json``; anything else goes through :mod:`json`.
    """

    def serialize(self, message: Any) -> bytes:
        """Encode *message* to JSON bytes."""
        try:
            if isinstance(message, BaseModel):
                return message.model_dump_json().encode("utf-8")
            return json.dumps(message, default=_json_default).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e

    def deserialize(self, raw: bytes, message_type: type[Any]) -> Any:
        """Decode JSON bytes into *message_type*."""
        try:
            if isinstance(message_type, type) and issubclass(message_type, BaseModel):
                return message_type.model_validate_json(raw)
            value = json.loads(bytes(raw).decode("utf-8"))
        except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MessagingSerializationError(str(e)) from e
        if (
            message_type is not Any
            and isinstance(message_type, type)
            and not isinstance(value, message_type)
        ):
            raise MessagingSerializationError(
                f"Expected {message_type.__name__}, got {type(value).__name__}"
            )
        return value
