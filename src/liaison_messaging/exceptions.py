"""Exception hierarchy for liaison-messaging.

Three bands of failure are distinguished:

* configuration errors raised eagerly at construction (``ValueError`` and
  :class:`MessagingConfigurationError`);
* payload-store errors (:class:`PayloadStoreError` and subclasses), the only
  vocabulary a store backend ever raises, tagged with a :class:`PayloadErrorKind`;
* integrity errors (:class:`PayloadIntegrityError`), fatal for the message
  being processed.
"""

from __future__ import annotations

from enum import StrEnum


class LiaisonError(Exception):
    """Root exception for the liaison-messaging toolkit."""


class InfrastructureError(LiaisonError):
    """Base class for all infrastructure-related errors."""


class MessagingConfigurationError(LiaisonError, ValueError):
    """Raised when a transport is wired with an inconsistent set of collaborators."""


class MessagingSerializationError(InfrastructureError):
    """Raised when message serialization or deserialization fails."""


# ── Payload store taxonomy ───────────────────────────────────────────


class PayloadErrorKind(StrEnum):
    """Backend-independent classification of payload-store failures."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    CONDITIONAL_CONFLICT = "conditional_conflict"
    ACCESS_DENIED = "access_denied"
    REFERENCE_INVALID = "reference_invalid"
    UNAVAILABLE = "unavailable"
    UNCLASSIFIED = "unclassified"
    NOT_SUPPORTED = "not_supported"


class PayloadStoreError(InfrastructureError):
    """Base class for every failure surfaced through the payload-store contract.

    Callers can branch on :attr:`kind` (or :attr:`retryable`) without knowing
    which backend produced the error.
    """

    kind: PayloadErrorKind = PayloadErrorKind.UNCLASSIFIED
    retryable: bool = False

    def __init__(self, message: str, reference: str | None = None) -> None:
        self.reference = reference
        super().__init__(message)


class PayloadNotFoundError(PayloadStoreError):
    """Raised when a reference does not resolve to a stored object."""

    kind = PayloadErrorKind.NOT_FOUND

    def __init__(self, reference: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Payload reference '{reference}' was not found.", reference
        )


class PayloadAlreadyExistsError(PayloadStoreError):
    """Raised when a write is rejected because the reference is occupied."""

    kind = PayloadErrorKind.ALREADY_EXISTS

    def __init__(self, reference: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Payload reference '{reference}' already exists.", reference
        )


class PayloadConditionalConflictError(PayloadStoreError):
    """Raised when a conditional-write race could not be classified as already-exists."""

    kind = PayloadErrorKind.CONDITIONAL_CONFLICT

    def __init__(self, reference: str, message: str | None = None) -> None:
        super().__init__(
            message
            or f"Conditional write conflict for payload reference '{reference}'.",
            reference,
        )


class PayloadAccessDeniedError(PayloadStoreError):
    """Raised when the backend rejects a call for authorization reasons."""

    kind = PayloadErrorKind.ACCESS_DENIED

    def __init__(self, reference: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Access to payload reference '{reference}' was denied.",
            reference,
        )


class PayloadReferenceInvalidError(PayloadStoreError):
    """Raised for an empty, whitespace-only or separator-only key or reference."""

    kind = PayloadErrorKind.REFERENCE_INVALID


class PayloadStoreUnavailableError(PayloadStoreError):
    """Transient infrastructure failure. Safe to retry."""

    kind = PayloadErrorKind.UNAVAILABLE
    retryable = True

    def __init__(
        self,
        message: str = "Payload store is unavailable.",
        reference: str | None = None,
    ) -> None:
        super().__init__(message, reference)


class PayloadStoreUnclassifiedError(PayloadStoreError):
    """Backend failure with no mapping in the taxonomy. The original is chained."""

    kind = PayloadErrorKind.UNCLASSIFIED


class ConditionalPutNotSupportedError(PayloadStoreError):
    """Raised when overwrite is disabled but the store cannot write conditionally.

    Raised before any network call; there is no best-effort fallback.
    """

    kind = PayloadErrorKind.NOT_SUPPORTED

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Conditional PUT is required when overwrite is disabled, but this "
            "store configuration has supports_conditional_put=False."
        )


# ── Integrity / consistency ──────────────────────────────────────────


class PayloadIntegrityError(LiaisonError):
    """Internal-invariant violation while externalizing or restoring a payload.

    Always fatal for the message being processed; retrying cannot fix it.
    """


class MissingPayloadReferenceError(PayloadIntegrityError):
    """Raised when an external-mode envelope carries no payload reference."""

    def __init__(self) -> None:
        super().__init__("LargePayload: Missing payload reference header.")


class UnsupportedPayloadEncodingError(PayloadIntegrityError):
    """Raised when an external payload declares an encoding other than gzip."""

    def __init__(self, encoding: str) -> None:
        self.encoding = encoding
        super().__init__(
            f"Unsupported payload encoding '{encoding}' for external payload resolution."
        )


class PayloadHashMismatchError(PayloadIntegrityError):
    """Raised when the restored body does not match its declared SHA-256."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__("LargePayload: Payload hash mismatch.")


class EmptyPayloadReferenceError(PayloadIntegrityError):
    """Raised when a store returns a blank reference for an uploaded payload."""

    def __init__(self) -> None:
        super().__init__(
            "Payload store returned an empty reference for an externalized payload."
        )
