"""In-memory transports for tests and local development."""

from __future__ import annotations

from .pubsub import InMemoryPubSub
from .request_client import InMemoryRequestClient

__all__ = [
    "InMemoryPubSub",
    "InMemoryRequestClient",
]
