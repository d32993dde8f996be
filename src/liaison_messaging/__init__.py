"""Claim-check large-payload messaging: payload stores, policy and in-memory transports.

Cloud backends live in ``liaison_messaging.storage.s3`` and
``liaison_messaging.storage.azure`` and need the ``s3`` / ``azure`` extras.
"""

from __future__ import annotations

from .envelope import MessageContext, MessageEnvelope
from .exceptions import (
    ConditionalPutNotSupportedError,
    EmptyPayloadReferenceError,
    InfrastructureError,
    LiaisonError,
    MessagingConfigurationError,
    MessagingSerializationError,
    MissingPayloadReferenceError,
    PayloadAccessDeniedError,
    PayloadAlreadyExistsError,
    PayloadConditionalConflictError,
    PayloadErrorKind,
    PayloadHashMismatchError,
    PayloadIntegrityError,
    PayloadNotFoundError,
    PayloadReferenceInvalidError,
    PayloadStoreError,
    PayloadStoreUnavailableError,
    PayloadStoreUnclassifiedError,
    UnsupportedPayloadEncodingError,
)
from .factory import MessageEnvelopeFactory, UUIDMessageIdGenerator
from .headers import LargePayloadHeaders
from .large_payload import DefaultLargePayloadPolicy, LargePayloadPolicyOptions
from .memory import InMemoryPubSub, InMemoryRequestClient
from .reply import Reply, ReplyStatus
from .serialization import JsonMessageSerializer
from .storage import MemoryPayloadStore
from .streams import BytesPayloadStream, PayloadStream
from .timeouts import FixedRequestTimeoutPolicy

__all__ = [
    "BytesPayloadStream",
    "ConditionalPutNotSupportedError",
    "DefaultLargePayloadPolicy",
    "EmptyPayloadReferenceError",
    "FixedRequestTimeoutPolicy",
    "InMemoryPubSub",
    "InMemoryRequestClient",
    "InfrastructureError",
    "JsonMessageSerializer",
    "LargePayloadHeaders",
    "LargePayloadPolicyOptions",
    "LiaisonError",
    "MemoryPayloadStore",
    "MessageContext",
    "MessageEnvelope",
    "MessageEnvelopeFactory",
    "MessagingConfigurationError",
    "MessagingSerializationError",
    "MissingPayloadReferenceError",
    "PayloadAccessDeniedError",
    "PayloadAlreadyExistsError",
    "PayloadConditionalConflictError",
    "PayloadErrorKind",
    "PayloadHashMismatchError",
    "PayloadIntegrityError",
    "PayloadNotFoundError",
    "PayloadReferenceInvalidError",
    "PayloadStoreError",
    "PayloadStoreUnavailableError",
    "PayloadStoreUnclassifiedError",
    "PayloadStream",
    "Reply",
    "ReplyStatus",
    "UUIDMessageIdGenerator",
    "UnsupportedPayloadEncodingError",
]
