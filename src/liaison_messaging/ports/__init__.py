from liaison_messaging.ports.large_payload import ILargePayloadPolicy
from .messaging import (
    IMessageHandler,
    IMessageSubscription,
    IRequestHandler,
    IRequestTimeoutPolicy,
)
from .payload_store import IPayloadStore, PayloadSource
from .serialization import IMessageIdGenerator, IMessageSerializer

__all__ = [
    "ILargePayloadPolicy",
    "IMessageHandler",
    "IMessageIdGenerator",
    "IMessageSerializer",
    "IMessageSubscription",
    "IPayloadStore",
    "IRequestHandler",
    "IRequestTimeoutPolicy",
    "PayloadSource",
]
