"""S3PayloadStore: IPayloadStore on an S3 bucket (conditional PUT via If-None-Match)."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    HTTPClientError,
    IncompleteReadError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError

from ...exceptions import (
    ConditionalPutNotSupportedError,
    PayloadAccessDeniedError,
    PayloadAlreadyExistsError,
    PayloadConditionalConflictError,
    PayloadNotFoundError,
    PayloadStoreError,
    PayloadStoreUnavailableError,
    PayloadStoreUnclassifiedError,
)
from ...streams import PayloadStream
from ..errors import (
    caller_cancelled,
    ensure_not_cancelled,
    is_access_denied,
    is_transient,
    run_cancellable,
)
from ..keys import (
    DEFAULT_CONTENT_TYPE,
    build_required_metadata,
    combine_prefix,
    copy_metadata,
    ensure_readable,
    ensure_size_hint,
    format_expires_marker,
    normalize_prefix,
    normalize_reference,
    resolve_content_length,
)
from ..request import UploadCustomizer, build_upload_request

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from ...ports.payload_store import PayloadSource
    from .connection import S3ConnectionManager

logger = logging.getLogger("liaison.payload_store")

_TRANSPORT_ERRORS = (HTTPClientError, BotoConnectionError, OSError)
_READ_ERRORS = (*_TRANSPORT_ERRORS, IncompleteReadError)
_BUCKET_MISSING_CODES = frozenset({"NoSuchBucket"})
_KEY_MISSING_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


@dataclass(frozen=True)
class S3PayloadStoreOptions:
    """Configuration for :class:`S3PayloadStore`.

    Attributes:
        bucket_name: Required bucket. Buckets are never created.
        prefix: Optional static key prefix placed before every caller key.
        overwrite: Allow uploads to replace an existing object.
        emit_expires_marker: Record ``expires_at`` as metadata and an object tag.
        supports_conditional_put: Whether the bucket honours ``If-None-Match``.
            With ``overwrite=False`` and this flag off, uploads are refused.
        static_metadata: Metadata applied to every upload.
        customize_put: Hook receiving the request builder before the final
            enforcement pass.
    """

    bucket_name: str
    prefix: str | None = None
    overwrite: bool = False
    emit_expires_marker: bool = True
    supports_conditional_put: bool = True
    static_metadata: Mapping[str, str] | None = None
    customize_put: UploadCustomizer | None = None

    def __post_init__(self) -> None:
        if not self.bucket_name or not self.bucket_name.strip():
            raise ValueError("bucket_name must be provided.")
        object.__setattr__(self, "bucket_name", self.bucket_name.strip())
        object.__setattr__(self, "static_metadata", copy_metadata(self.static_metadata))


def _status_of(exc: ClientError) -> int | None:
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return int(status) if status is not None else None


def _code_of(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class _S3BodyStream(PayloadStream):
    """PayloadStream over an aiobotocore ``StreamingBody``."""

    def __init__(
        self,
        body: Any,
        reference: str,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._body = body
        self._reference = reference
        self._cancel_event = cancel_event
        self._closed = False

    async def read(self, size: int = -1) -> bytes:
        ensure_not_cancelled(self._cancel_event)
        try:
            chunk = await run_cancellable(
                self._body.read(None if size < 0 else size), self._cancel_event
            )
        except _READ_ERRORS as exc:
            # ResponseStreamingError is an HTTPClientError; truncated bodies
            # surface as IncompleteReadError.
            raise PayloadStoreUnavailableError(
                f"S3 is unavailable while reading payload reference '{self._reference}'.",
                self._reference,
            ) from exc
        except BotoCoreError as exc:
            raise PayloadStoreUnclassifiedError(
                f"S3 read failed for payload reference '{self._reference}'.",
                self._reference,
            ) from exc
        return bytes(chunk)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        result = self._body.close()
        if inspect.isawaitable(result):
            await result


class S3PayloadStore:
    """
    Amazon S3 implementation of IPayloadStore.

    The reference is the full object key (static prefix + caller key), so it
    re-resolves without any prefix re-combination.
    """

    def __init__(
        self,
        connection: S3ConnectionManager,
        options: S3PayloadStoreOptions,
    ) -> None:
        if connection is None:
            raise ValueError("connection must be provided.")
        if options is None:
            raise ValueError("options must be provided.")
        self._connection = connection
        self._options = options
        self._bucket = options.bucket_name
        self._prefix = normalize_prefix(options.prefix)

    @property
    def bucket_name(self) -> str:
        return self._bucket

    @property
    def supports_conditional_put(self) -> bool:
        return self._options.supports_conditional_put

    async def upload(
        self,
        payload: PayloadSource,
        key_prefix: str,
        size_hint: int | None = None,
        expires_at: datetime | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        ensure_readable(payload)
        ensure_size_hint(size_hint)
        ensure_not_cancelled(cancel_event)

        if not self._options.overwrite and not self._options.supports_conditional_put:
            raise ConditionalPutNotSupportedError()

        reference = combine_prefix(self._prefix, normalize_reference(key_prefix))
        expires_marker = (
            format_expires_marker(expires_at)
            if self._options.emit_expires_marker and expires_at is not None
            else None
        )
        metadata = build_required_metadata(self._options.static_metadata, expires_marker)

        content_length = resolve_content_length(payload, size_hint)
        if isinstance(payload, bytes | bytearray | memoryview):
            body: Any = bytes(payload)
        elif content_length is None:
            # S3 needs a length; buffer unseekable streams without a hint.
            body = bytes(payload.read())
            content_length = len(body)
        else:
            body = payload

        required: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": reference,
            "Body": body,
            "ContentType": DEFAULT_CONTENT_TYPE,
            "ContentLength": content_length,
        }
        if not self._options.overwrite:
            required["IfNoneMatch"] = "*"

        request = build_upload_request(
            required,
            metadata,
            expires_marker,
            self._options.customize_put,
            tag_expires_marker=True,
        )
        put_kwargs = dict(request.params)
        if request.metadata:
            put_kwargs["Metadata"] = request.metadata
        if request.tags:
            put_kwargs["Tagging"] = urlencode(request.tags)

        try:
            client = await self._connection.get_client()
            await run_cancellable(client.put_object(**put_kwargs), cancel_event)
        except asyncio.CancelledError as exc:
            if caller_cancelled(cancel_event):
                raise
            raise self._unavailable("uploading", reference) from exc
        except ClientError as exc:
            raise self._map_upload_error(reference, exc) from exc
        except _TRANSPORT_ERRORS as exc:
            raise self._unavailable("uploading", reference) from exc
        except BotoCoreError as exc:
            raise self._unclassified("uploading", reference, exc) from exc

        logger.debug("Uploaded payload s3://%s/%s", self._bucket, reference)
        return reference

    async def download(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PayloadStream:
        reference = normalize_reference(reference)
        ensure_not_cancelled(cancel_event)

        try:
            client = await self._connection.get_client()
            response = await run_cancellable(
                client.get_object(Bucket=self._bucket, Key=reference), cancel_event
            )
        except asyncio.CancelledError as exc:
            if caller_cancelled(cancel_event):
                raise
            raise self._unavailable("downloading", reference) from exc
        except ClientError as exc:
            raise self._map_download_error(reference, exc) from exc
        except _TRANSPORT_ERRORS as exc:
            raise self._unavailable("downloading", reference) from exc
        except BotoCoreError as exc:
            raise self._unclassified("downloading", reference, exc) from exc

        logger.debug("Opened payload s3://%s/%s", self._bucket, reference)
        return _S3BodyStream(response["Body"], reference, cancel_event)

    async def delete(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        reference = normalize_reference(reference)
        ensure_not_cancelled(cancel_event)

        try:
            client = await self._connection.get_client()
            # DeleteObject succeeds for missing keys, which keeps delete idempotent.
            await run_cancellable(
                client.delete_object(Bucket=self._bucket, Key=reference), cancel_event
            )
        except asyncio.CancelledError as exc:
            if caller_cancelled(cancel_event):
                raise
            raise self._unavailable("deleting", reference) from exc
        except ClientError as exc:
            raise self._map_delete_error(reference, exc) from exc
        except _TRANSPORT_ERRORS as exc:
            raise self._unavailable("deleting", reference) from exc
        except BotoCoreError as exc:
            raise self._unclassified("deleting", reference, exc) from exc

        logger.debug("Deleted payload s3://%s/%s", self._bucket, reference)

    # ── Error mapping ────────────────────────────────────────────────

    def _unavailable(self, action: str, reference: str) -> PayloadStoreUnavailableError:
        return PayloadStoreUnavailableError(
            f"S3 is unavailable while {action} payload reference '{reference}'.",
            reference,
        )

    def _bucket_missing(self, action: str, reference: str) -> PayloadStoreUnavailableError:
        return PayloadStoreUnavailableError(
            f"S3 bucket '{self._bucket}' was not found while {action} "
            f"payload reference '{reference}'.",
            reference,
        )

    def _unclassified(
        self, action: str, reference: str, exc: ClientError | BotoCoreError
    ) -> PayloadStoreUnclassifiedError:
        if isinstance(exc, ClientError):
            logger.warning(
                "Unclassified S3 error while %s %s: status=%s code=%s",
                action,
                reference,
                _status_of(exc),
                _code_of(exc),
            )
        else:
            logger.warning(
                "Unclassified S3 error while %s %s: %s",
                action,
                reference,
                type(exc).__name__,
            )
        return PayloadStoreUnclassifiedError(
            f"S3 {action} failed for payload reference '{reference}'.", reference
        )

    @staticmethod
    def _is_access_denied(exc: ClientError) -> bool:
        return is_access_denied(_status_of(exc)) or _code_of(exc) == "AccessDenied"

    def _map_upload_error(self, reference: str, exc: ClientError) -> PayloadStoreError:
        status, code = _status_of(exc), _code_of(exc)
        if self._is_access_denied(exc):
            return PayloadAccessDeniedError(
                reference, f"Access denied while uploading payload reference '{reference}'."
            )
        conditional = (
            not self._options.overwrite and self._options.supports_conditional_put
        )
        if conditional and (status == 412 or code == "PreconditionFailed"):
            return PayloadAlreadyExistsError(reference)
        if conditional and (status == 409 or code == "ConditionalRequestConflict"):
            return PayloadConditionalConflictError(reference)
        if is_transient(status):
            return self._unavailable("uploading", reference)
        if status == 404 or code in _BUCKET_MISSING_CODES:
            return self._bucket_missing("uploading", reference)
        return self._unclassified("uploading", reference, exc)

    def _map_download_error(self, reference: str, exc: ClientError) -> PayloadStoreError:
        status, code = _status_of(exc), _code_of(exc)
        if code in _BUCKET_MISSING_CODES:
            return self._bucket_missing("downloading", reference)
        if status == 404 or code in _KEY_MISSING_CODES:
            return PayloadNotFoundError(reference)
        if self._is_access_denied(exc):
            return PayloadAccessDeniedError(reference)
        if is_transient(status):
            return self._unavailable("downloading", reference)
        return self._unclassified("downloading", reference, exc)

    def _map_delete_error(self, reference: str, exc: ClientError) -> PayloadStoreError:
        status, code = _status_of(exc), _code_of(exc)
        if self._is_access_denied(exc):
            return PayloadAccessDeniedError(
                reference, f"Access denied while deleting payload reference '{reference}'."
            )
        if status == 404 or code in _BUCKET_MISSING_CODES:
            return self._bucket_missing("deleting", reference)
        if is_transient(status):
            return self._unavailable("deleting", reference)
        return self._unclassified("deleting", reference, exc)
