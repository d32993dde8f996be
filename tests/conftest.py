"""Shared fixtures for liaison-messaging tests."""

from __future__ import annotations

import pytest

from liaison_messaging.envelope import MessageEnvelope
from liaison_messaging.storage import MemoryPayloadStore


@pytest.fixture
def memory_store() -> MemoryPayloadStore:
    return MemoryPayloadStore()


@pytest.fixture
def make_envelope():
    def _make(
        body: bytes = b"",
        headers: dict[str, str] | None = None,
        message_id: str = "msg-1",
    ) -> MessageEnvelope:
        return MessageEnvelope(
            message_id=message_id,
            correlation_id="corr-1",
            body=body,
            headers=headers if headers is not None else {},
        )

    return _make
