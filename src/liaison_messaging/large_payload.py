"""DefaultLargePayloadPolicy: claim-check externalization of large message bodies.

Outbound bodies above the configured threshold are uploaded to an
:class:`~liaison_messaging.ports.payload_store.IPayloadStore` and replaced
by a set of ``liaison.payload.*`` headers. Inbound envelopes carrying
``mode=external`` are restored from the store and verified against the
recorded SHA-256 before anything downstream sees the body.
"""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
import zlib
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import (
    EmptyPayloadReferenceError,
    MissingPayloadReferenceError,
    PayloadHashMismatchError,
    PayloadIntegrityError,
    UnsupportedPayloadEncodingError,
)
from .headers import LargePayloadHeaders
from .storage.keys import format_expires_marker

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping
    from datetime import datetime

    from .envelope import MessageEnvelope
    from .ports.payload_store import IPayloadStore

logger = logging.getLogger("liaison.large_payload")

DEFAULT_THRESHOLD_BYTES = 200 * 1024


class LargePayloadPolicyOptions(BaseModel):
    """Immutable policy configuration, validated on construction."""

    model_config = ConfigDict(frozen=True)

    threshold_bytes: int = Field(default=DEFAULT_THRESHOLD_BYTES, ge=0)
    use_compression: bool = False
    key_prefix: str = "payload"

    @field_validator("key_prefix")
    @classmethod
    def _key_prefix_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("key_prefix must be provided.")
        return value


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class DefaultLargePayloadPolicy:
    """
    Size-threshold claim-check policy.

    Stateless and reentrant: each externalized body is keyed by its own
    message id, so concurrent calls never share anything.
    """

    def __init__(self, options: LargePayloadPolicyOptions | None = None) -> None:
        self._options = options or LargePayloadPolicyOptions()

    @property
    def threshold_bytes(self) -> int:
        return self._options.threshold_bytes

    @property
    def use_compression(self) -> bool:
        return self._options.use_compression

    @property
    def key_prefix(self) -> str:
        return self._options.key_prefix

    async def prepare_outbound(
        self,
        envelope: MessageEnvelope,
        store: IPayloadStore,
        expires_at: datetime | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> MessageEnvelope:
        """Externalize the body when it is larger than ``threshold_bytes``.

        Store failures propagate unchanged. A blank reference returned by the
        store raises :class:`EmptyPayloadReferenceError`.
        """
        if envelope is None:
            raise TypeError("envelope must not be None")
        if store is None:
            raise TypeError("store must not be None")

        if len(envelope.body) <= self.threshold_bytes:
            return envelope.replace()

        original = bytes(envelope.body)
        digest = _sha256_hex(original)
        upload_payload = gzip.compress(original) if self.use_compression else original

        reference = await store.upload(
            io.BytesIO(upload_payload),
            f"{self.key_prefix}/{envelope.message_id}",
            size_hint=len(upload_payload),
            expires_at=expires_at,
            cancel_event=cancel_event,
        )
        if not reference or not reference.strip():
            raise EmptyPayloadReferenceError()

        headers = dict(envelope.headers)
        headers[LargePayloadHeaders.MODE] = LargePayloadHeaders.MODE_EXTERNAL
        headers[LargePayloadHeaders.REFERENCE] = reference
        headers[LargePayloadHeaders.SHA256] = digest
        headers[LargePayloadHeaders.SIZE] = str(len(original))

        if self.use_compression:
            headers[LargePayloadHeaders.ENCODING] = LargePayloadHeaders.ENCODING_GZIP
        else:
            headers.pop(LargePayloadHeaders.ENCODING, None)

        if expires_at is not None:
            headers[LargePayloadHeaders.EXPIRES] = format_expires_marker(expires_at)
        else:
            headers.pop(LargePayloadHeaders.EXPIRES, None)

        logger.debug(
            "Externalized message %s: %d bytes -> %s (%d uploaded)",
            envelope.message_id,
            len(original),
            reference,
            len(upload_payload),
        )
        return envelope.replace(body=b"", headers=headers)

    async def resolve_inbound(
        self,
        envelope: MessageEnvelope,
        store: IPayloadStore,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> MessageEnvelope:
        """Restore an externalized body.

        The claim-check headers are left on the returned envelope.
        """
        if envelope is None:
            raise TypeError("envelope must not be None")
        if store is None:
            raise TypeError("store must not be None")

        mode = envelope.headers.get(LargePayloadHeaders.MODE)
        if mode is None or mode.lower() != LargePayloadHeaders.MODE_EXTERNAL:
            return envelope.replace()

        reference = envelope.headers.get(LargePayloadHeaders.REFERENCE)
        if reference is None or not reference.strip():
            raise MissingPayloadReferenceError()

        async with await store.download(reference, cancel_event=cancel_event) as stream:
            stored = await stream.readall()

        body = self._decode(stored, envelope.headers)
        self._verify_sha256(body, envelope.headers)

        logger.debug(
            "Resolved message %s from %s (%d bytes)",
            envelope.message_id,
            reference,
            len(body),
        )
        return envelope.replace(body=body)

    @staticmethod
    def _decode(payload: bytes, headers: Mapping[str, str]) -> bytes:
        encoding = headers.get(LargePayloadHeaders.ENCODING)
        if encoding is None or not encoding.strip():
            return payload
        if encoding.lower() != LargePayloadHeaders.ENCODING_GZIP:
            raise UnsupportedPayloadEncodingError(encoding)
        try:
            return gzip.decompress(payload)
        except (OSError, EOFError, zlib.error) as exc:
            raise PayloadIntegrityError(
                "LargePayload: Payload could not be decompressed."
            ) from exc

    @staticmethod
    def _verify_sha256(payload: bytes, headers: Mapping[str, str]) -> None:
        expected = headers.get(LargePayloadHeaders.SHA256)
        if expected is None or not expected.strip():
            return
        actual = _sha256_hex(payload)
        if expected.lower() != actual:
            raise PayloadHashMismatchError(expected, actual)
