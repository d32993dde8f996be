"""AzureBlobPayloadStore: IPayloadStore on a blob container (If-None-Match: *)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

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
    from types import TracebackType

    from ...ports.payload_store import PayloadSource

logger = logging.getLogger("liaison.payload_store")

_TRANSPORT_ERRORS = (ServiceRequestError, ServiceResponseError, OSError)
_CONTAINER_MISSING = "ContainerNotFound"
_BLOB_EXISTS = "BlobAlreadyExists"


@dataclass(frozen=True)
class AzureBlobPayloadStoreOptions:
    """Configuration for :class:`AzureBlobPayloadStore`.

    Attributes:
        container_name: Required container. Containers are never created.
        client: Preconfigured async ``BlobServiceClient``; owned by the caller.
        connection_string: Used to build a client when ``client`` is not given;
            the store then owns and closes that client.
        prefix: Optional static blob-name prefix.
        overwrite: Allow uploads to replace an existing blob.
        emit_expires_marker: Record ``expires_at`` as blob metadata.
        supports_conditional_put: Whether the account honours ``If-None-Match``.
        static_metadata: Metadata applied to every upload.
        customize_upload: Hook receiving the request builder before the final
            enforcement pass.
    """

    container_name: str
    client: BlobServiceClient | None = None
    connection_string: str | None = None
    prefix: str | None = None
    overwrite: bool = False
    emit_expires_marker: bool = True
    supports_conditional_put: bool = True
    static_metadata: Mapping[str, str] | None = None
    customize_upload: UploadCustomizer | None = None

    def __post_init__(self) -> None:
        if not self.container_name or not self.container_name.strip():
            raise ValueError("container_name must be provided.")
        if self.client is None and (
            not self.connection_string or not self.connection_string.strip()
        ):
            raise ValueError("Either client or connection_string must be provided.")
        object.__setattr__(self, "container_name", self.container_name.strip())
        object.__setattr__(self, "static_metadata", copy_metadata(self.static_metadata))


def _error_code_of(exc: AzureError) -> str | None:
    return getattr(exc, "error_code", None)


class _BlobDownloadStream(PayloadStream):
    """PayloadStream over an async ``StorageStreamDownloader``."""

    def __init__(
        self,
        downloader: Any,
        reference: str,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._downloader = downloader
        self._reference = reference
        self._cancel_event = cancel_event

    async def read(self, size: int = -1) -> bytes:
        ensure_not_cancelled(self._cancel_event)
        try:
            if size < 0:
                call = self._downloader.readall()
            else:
                call = self._downloader.read(size)
            return bytes(await run_cancellable(call, self._cancel_event))
        except (AzureError, OSError) as exc:
            raise PayloadStoreUnavailableError(
                "Azure Blob Storage is unavailable while reading payload "
                f"reference '{self._reference}'.",
                self._reference,
            ) from exc


class AzureBlobPayloadStore:
    """
    Azure Blob Storage implementation of IPayloadStore.

    The reference is the full blob name (static prefix + caller key).
    """

    def __init__(self, options: AzureBlobPayloadStoreOptions) -> None:
        if options is None:
            raise ValueError("options must be provided.")
        self._options = options
        self._owns_client = options.client is None
        self._service = options.client or BlobServiceClient.from_connection_string(
            str(options.connection_string)
        )
        self._container = self._service.get_container_client(options.container_name)
        self._container_name = options.container_name
        self._prefix = normalize_prefix(options.prefix)

    @property
    def container_name(self) -> str:
        return self._container_name

    @property
    def supports_conditional_put(self) -> bool:
        return self._options.supports_conditional_put

    async def close(self) -> None:
        """Close the service client if this store created it."""
        if self._owns_client:
            await self._service.close()
            self._owns_client = False

    async def __aenter__(self) -> AzureBlobPayloadStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

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
        data: Any = (
            bytes(payload)
            if isinstance(payload, bytes | bytearray | memoryview)
            else payload
        )

        required: dict[str, Any] = {
            "data": data,
            "length": resolve_content_length(payload, size_hint),
            "overwrite": self._options.overwrite,
            "content_settings": ContentSettings(content_type=DEFAULT_CONTENT_TYPE),
        }
        if not self._options.overwrite:
            required["match_condition"] = MatchConditions.IfMissing

        request = build_upload_request(
            required, metadata, expires_marker, self._options.customize_upload
        )
        upload_kwargs = dict(request.params)
        if request.metadata:
            upload_kwargs["metadata"] = request.metadata
        if request.tags:
            upload_kwargs["tags"] = request.tags

        blob = self._container.get_blob_client(reference)
        try:
            await run_cancellable(blob.upload_blob(**upload_kwargs), cancel_event)
        except asyncio.CancelledError as exc:
            if caller_cancelled(cancel_event):
                raise
            raise self._unavailable("uploading", reference) from exc
        except HttpResponseError as exc:
            raise self._map_upload_error(reference, exc) from exc
        except _TRANSPORT_ERRORS as exc:
            raise self._unavailable("uploading", reference) from exc
        except AzureError as exc:
            raise self._unclassified("uploading", reference, exc) from exc

        logger.debug("Uploaded payload %s/%s", self._container_name, reference)
        return reference

    async def download(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PayloadStream:
        reference = normalize_reference(reference)
        ensure_not_cancelled(cancel_event)

        blob = self._container.get_blob_client(reference)
        try:
            downloader = await run_cancellable(blob.download_blob(), cancel_event)
        except asyncio.CancelledError as exc:
            if caller_cancelled(cancel_event):
                raise
            raise self._unavailable("downloading", reference) from exc
        except HttpResponseError as exc:
            raise self._map_download_error(reference, exc) from exc
        except _TRANSPORT_ERRORS as exc:
            raise self._unavailable("downloading", reference) from exc
        except AzureError as exc:
            raise self._unclassified("downloading", reference, exc) from exc

        logger.debug("Opened payload %s/%s", self._container_name, reference)
        return _BlobDownloadStream(downloader, reference, cancel_event)

    async def delete(
        self,
        reference: str,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        reference = normalize_reference(reference)
        ensure_not_cancelled(cancel_event)

        blob = self._container.get_blob_client(reference)
        try:
            await run_cancellable(
                blob.delete_blob(delete_snapshots="include"), cancel_event
            )
        except asyncio.CancelledError as exc:
            if caller_cancelled(cancel_event):
                raise
            raise self._unavailable("deleting", reference) from exc
        except HttpResponseError as exc:
            if exc.status_code == 404 and _error_code_of(exc) != _CONTAINER_MISSING:
                logger.debug("Payload %s already absent", reference)
                return
            raise self._map_delete_error(reference, exc) from exc
        except _TRANSPORT_ERRORS as exc:
            raise self._unavailable("deleting", reference) from exc
        except AzureError as exc:
            raise self._unclassified("deleting", reference, exc) from exc

        logger.debug("Deleted payload %s/%s", self._container_name, reference)

    # ── Error mapping ────────────────────────────────────────────────

    def _unavailable(self, action: str, reference: str) -> PayloadStoreUnavailableError:
        return PayloadStoreUnavailableError(
            f"Azure Blob Storage is unavailable while {action} "
            f"payload reference '{reference}'.",
            reference,
        )

    def _container_missing(
        self, action: str, reference: str
    ) -> PayloadStoreUnavailableError:
        return PayloadStoreUnavailableError(
            f"Blob container '{self._container_name}' was not found while {action} "
            f"payload reference '{reference}'.",
            reference,
        )

    def _unclassified(
        self, action: str, reference: str, exc: AzureError
    ) -> PayloadStoreUnclassifiedError:
        logger.warning(
            "Unclassified Azure Blob error while %s %s: %s status=%s code=%s",
            action,
            reference,
            type(exc).__name__,
            getattr(exc, "status_code", None),
            _error_code_of(exc),
        )
        return PayloadStoreUnclassifiedError(
            f"Azure Blob {action} failed for payload reference '{reference}'.",
            reference,
        )

    def _map_upload_error(
        self, reference: str, exc: HttpResponseError
    ) -> PayloadStoreError:
        status = exc.status_code
        if is_access_denied(status):
            return PayloadAccessDeniedError(
                reference, f"Access denied while uploading payload reference '{reference}'."
            )
        if not self._options.overwrite:
            if status == 412 or (status == 409 and _error_code_of(exc) == _BLOB_EXISTS):
                return PayloadAlreadyExistsError(reference)
            if status == 409:
                return PayloadConditionalConflictError(reference)
        if status == 404:
            return self._container_missing("uploading", reference)
        if is_transient(status):
            return self._unavailable("uploading", reference)
        return self._unclassified("uploading", reference, exc)

    def _map_download_error(
        self, reference: str, exc: HttpResponseError
    ) -> PayloadStoreError:
        status = exc.status_code
        if status == 404:
            if _error_code_of(exc) == _CONTAINER_MISSING:
                return self._container_missing("downloading", reference)
            return PayloadNotFoundError(reference)
        if is_access_denied(status):
            return PayloadAccessDeniedError(reference)
        if is_transient(status):
            return self._unavailable("downloading", reference)
        return self._unclassified("downloading", reference, exc)

    def _map_delete_error(
        self, reference: str, exc: HttpResponseError
    ) -> PayloadStoreError:
        status = exc.status_code
        if is_access_denied(status):
            return PayloadAccessDeniedError(
                reference, f"Access denied while deleting payload reference '{reference}'."
            )
        if status == 404:
            return self._container_missing("deleting", reference)
        if is_transient(status):
            return self._unavailable("deleting", reference)
        return self._unclassified("deleting", reference, exc)
