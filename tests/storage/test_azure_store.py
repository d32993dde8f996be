"""Unit tests for AzureBlobPayloadStore with a mocked async BlobServiceClient."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    DecodeError,
    HttpResponseError,
    IncompleteReadError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
)

from liaison_messaging.exceptions import (
    ConditionalPutNotSupportedError,
    PayloadAccessDeniedError,
    PayloadAlreadyExistsError,
    PayloadConditionalConflictError,
    PayloadNotFoundError,
    PayloadStoreError,
    PayloadStoreUnavailableError,
    PayloadStoreUnclassifiedError,
)
from liaison_messaging.ports import IPayloadStore
from liaison_messaging.storage.azure import (
    AzureBlobPayloadStore,
    AzureBlobPayloadStoreOptions,
)
from liaison_messaging.storage.keys import EXPIRES_MARKER_KEY
from liaison_messaging.storage.request import UploadRequestBuilder


def http_error(
    status: int,
    error_code: str | None = None,
    cls: type[HttpResponseError] = HttpResponseError,
) -> HttpResponseError:
    error = cls(message=f"status {status}")
    error.status_code = status
    error.error_code = error_code  # type: ignore[attr-defined]
    return error


@pytest.fixture
def mock_blob() -> MagicMock:
    blob = MagicMock()
    blob.upload_blob = AsyncMock(return_value={"etag": '"1"'})
    blob.download_blob = AsyncMock()
    blob.delete_blob = AsyncMock(return_value=None)
    return blob


@pytest.fixture
def mock_service(mock_blob: MagicMock) -> MagicMock:
    container = MagicMock()
    container.get_blob_client.return_value = mock_blob
    service = MagicMock()
    service.get_container_client.return_value = container
    service.close = AsyncMock()
    return service


def make_store(client: Any, **options: Any) -> AzureBlobPayloadStore:
    options.setdefault("container_name", "payloads")
    return AzureBlobPayloadStore(AzureBlobPayloadStoreOptions(client=client, **options))


def upload_kwargs(blob: MagicMock) -> dict[str, Any]:
    blob.upload_blob.assert_awaited_once()
    return dict(blob.upload_blob.call_args.kwargs)


class FakeConditionalBlobService:
    """Honours MatchConditions.IfMissing against an in-process dict."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.upload_calls = 0

    def get_container_client(self, name: str) -> FakeConditionalBlobService:
        return self

    def get_blob_client(self, name: str) -> Any:
        service = self

        class _Blob:
            async def upload_blob(self, **kwargs: Any) -> dict[str, Any]:
                service.upload_calls += 1
                await asyncio.sleep(0)
                if (
                    kwargs.get("match_condition") is MatchConditions.IfMissing
                    and name in service.blobs
                ):
                    raise http_error(409, "BlobAlreadyExists", ResourceExistsError)
                data = kwargs["data"]
                service.blobs[name] = data if isinstance(data, bytes) else data.read()
                return {}

        return _Blob()


# ── Options / construction ───────────────────────────────────────────


@pytest.mark.parametrize("container", ["", "  "])
def test_options_reject_blank_container(container: str, mock_service: MagicMock) -> None:
    with pytest.raises(ValueError):
        AzureBlobPayloadStoreOptions(container_name=container, client=mock_service)


@pytest.mark.parametrize("connection_string", [None, "", "   "])
def test_options_require_client_or_connection_string(
    connection_string: str | None,
) -> None:
    with pytest.raises(ValueError):
        AzureBlobPayloadStoreOptions(
            container_name="payloads", connection_string=connection_string
        )


def test_store_requires_options() -> None:
    with pytest.raises(ValueError):
        AzureBlobPayloadStore(None)  # type: ignore[arg-type]


def test_store_uses_injected_client(mock_service: MagicMock) -> None:
    store = make_store(mock_service)
    assert isinstance(store, IPayloadStore)
    assert store.container_name == "payloads"
    mock_service.get_container_client.assert_called_once_with("payloads")


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(mock_service: MagicMock) -> None:
    async with make_store(mock_service):
        pass
    mock_service.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_owned_client_is_closed_once(mock_service: MagicMock) -> None:
    with patch(
        "liaison_messaging.storage.azure.store.BlobServiceClient.from_connection_string",
        return_value=mock_service,
    ) as factory:
        store = AzureBlobPayloadStore(
            AzureBlobPayloadStoreOptions(
                container_name="payloads",
                connection_string="UseDevelopmentStorage=true",
            )
        )
        factory.assert_called_once_with("UseDevelopmentStorage=true")

    async with store:
        pass
    await store.close()
    mock_service.close.assert_awaited_once()


# ── Upload ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_upload_conditional(mock_service: MagicMock, mock_blob: MagicMock) -> None:
    store = make_store(mock_service, prefix="tenant-a/")
    ref = await store.upload(b"data", "/payload/m1")

    assert ref == "tenant-a/payload/m1"
    container = mock_service.get_container_client.return_value
    container.get_blob_client.assert_called_once_with("tenant-a/payload/m1")
    kwargs = upload_kwargs(mock_blob)
    assert kwargs["data"] == b"data"
    assert kwargs["length"] == 4
    assert kwargs["overwrite"] is False
    assert kwargs["match_condition"] is MatchConditions.IfMissing
    assert kwargs["content_settings"].content_type == "application/octet-stream"
    assert "metadata" not in kwargs


@pytest.mark.asyncio
async def test_upload_overwrite(mock_service: MagicMock, mock_blob: MagicMock) -> None:
    store = make_store(mock_service, overwrite=True, supports_conditional_put=False)
    await store.upload(b"data", "payload/m1")
    kwargs = upload_kwargs(mock_blob)
    assert kwargs["overwrite"] is True
    assert "match_condition" not in kwargs


@pytest.mark.asyncio
async def test_expires_marker_round_trip(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    expires = datetime(2030, 7, 1, 23, 30, tzinfo=timezone(timedelta(hours=-4)))
    store = make_store(mock_service, static_metadata={"team": "billing"})
    await store.upload(b"data", "payload/m1", expires_at=expires)

    metadata = upload_kwargs(mock_blob)["metadata"]
    assert metadata["team"] == "billing"
    assert metadata[EXPIRES_MARKER_KEY] == "2030-07-02T03:30:00+00:00"
    assert datetime.fromisoformat(metadata[EXPIRES_MARKER_KEY]) == expires


@pytest.mark.asyncio
async def test_customize_upload_cannot_remove_safety_fields(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    def customize(builder: UploadRequestBuilder) -> None:
        builder.without_param("match_condition")
        builder.with_param("overwrite", True)
        builder.without_metadata(EXPIRES_MARKER_KEY)
        builder.with_param("standard_blob_tier", "Cool")
        builder.with_tag("env", "prod")

    store = make_store(mock_service, customize_upload=customize)
    await store.upload(
        b"data", "payload/m1", expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc)
    )

    kwargs = upload_kwargs(mock_blob)
    assert kwargs["match_condition"] is MatchConditions.IfMissing
    assert kwargs["overwrite"] is False
    assert kwargs["standard_blob_tier"] == "Cool"
    assert kwargs["metadata"] == {EXPIRES_MARKER_KEY: "2030-01-01T00:00:00+00:00"}
    assert kwargs["tags"] == {"env": "prod"}


@pytest.mark.asyncio
async def test_conditional_put_not_supported_fails_fast(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    store = make_store(mock_service, supports_conditional_put=False)
    with pytest.raises(ConditionalPutNotSupportedError):
        await store.upload(b"data", "payload/m1")
    assert mock_blob.upload_blob.call_count == 0


@pytest.mark.asyncio
async def test_concurrent_uploads_one_wins() -> None:
    fake = FakeConditionalBlobService()
    store = make_store(fake)

    results = await asyncio.gather(
        store.upload(b"first", "payload/m1"),
        store.upload(b"second", "payload/m1"),
        return_exceptions=True,
    )

    assert [r for r in results if isinstance(r, str)] == ["payload/m1"]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], PayloadAlreadyExistsError)
    assert fake.blobs == {"payload/m1": b"first"}


@pytest.mark.asyncio
async def test_concurrent_uploads_fail_fast_without_conditional_put() -> None:
    fake = FakeConditionalBlobService()
    store = make_store(fake, supports_conditional_put=False)

    results = await asyncio.gather(
        store.upload(b"first", "payload/m1"),
        store.upload(b"second", "payload/m1"),
        return_exceptions=True,
    )

    assert all(isinstance(r, ConditionalPutNotSupportedError) for r in results)
    assert fake.upload_calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "code", "expected"),
    [
        (412, "ConditionNotMet", PayloadAlreadyExistsError),
        (409, "BlobAlreadyExists", PayloadAlreadyExistsError),
        (409, "LeaseIdMissing", PayloadConditionalConflictError),
        (403, "AuthorizationFailure", PayloadAccessDeniedError),
        (401, None, PayloadAccessDeniedError),
        (404, "ContainerNotFound", PayloadStoreUnavailableError),
        (408, None, PayloadStoreUnavailableError),
        (429, None, PayloadStoreUnavailableError),
        (503, "ServerBusy", PayloadStoreUnavailableError),
        (400, "InvalidHeaderValue", PayloadStoreUnclassifiedError),
    ],
)
async def test_upload_error_mapping(
    mock_service: MagicMock,
    mock_blob: MagicMock,
    status: int,
    code: str | None,
    expected: type[Exception],
) -> None:
    original = http_error(status, code)
    mock_blob.upload_blob.side_effect = original
    store = make_store(mock_service)

    with pytest.raises(expected) as exc_info:
        await store.upload(b"data", "payload/m1")
    assert exc_info.value.__cause__ is original


@pytest.mark.asyncio
async def test_upload_transport_error_is_unavailable(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    mock_blob.upload_blob.side_effect = ServiceRequestError("dns failure")
    store = make_store(mock_service)
    with pytest.raises(PayloadStoreUnavailableError):
        await store.upload(b"data", "payload/m1")


@pytest.mark.asyncio
async def test_transport_abort_is_unavailable(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    mock_blob.upload_blob.side_effect = asyncio.CancelledError()
    store = make_store(mock_service)
    with pytest.raises(PayloadStoreUnavailableError):
        await store.upload(b"data", "payload/m1")


@pytest.mark.asyncio
async def test_pre_cancelled_makes_no_call(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    cancel = asyncio.Event()
    cancel.set()
    store = make_store(mock_service)
    with pytest.raises(asyncio.CancelledError):
        await store.upload(b"data", "payload/m1", cancel_event=cancel)
    with pytest.raises(asyncio.CancelledError):
        await store.download("payload/m1", cancel_event=cancel)
    with pytest.raises(asyncio.CancelledError):
        await store.delete("payload/m1", cancel_event=cancel)
    assert mock_blob.upload_blob.call_count == 0
    assert mock_blob.download_blob.call_count == 0
    assert mock_blob.delete_blob.call_count == 0


# ── Download / delete ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_download_streams(mock_service: MagicMock, mock_blob: MagicMock) -> None:
    downloader = MagicMock()
    downloader.read = AsyncMock(side_effect=[b"abc", b"def", b""])
    downloader.readall = AsyncMock(return_value=b"everything")
    mock_blob.download_blob.return_value = downloader
    store = make_store(mock_service)

    stream = await store.download("payload/m1")
    assert await stream.readall() == b"abcdef"

    stream = await store.download("payload/m1")
    assert await stream.read() == b"everything"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "code", "cls", "expected"),
    [
        (404, "BlobNotFound", ResourceNotFoundError, PayloadNotFoundError),
        (404, "ContainerNotFound", ResourceNotFoundError, PayloadStoreUnavailableError),
        (403, "AuthorizationFailure", HttpResponseError, PayloadAccessDeniedError),
        (500, "InternalError", HttpResponseError, PayloadStoreUnavailableError),
        (400, "InvalidQueryParameterValue", HttpResponseError, PayloadStoreUnclassifiedError),
    ],
)
async def test_download_error_mapping(
    mock_service: MagicMock,
    mock_blob: MagicMock,
    status: int,
    code: str,
    cls: type[HttpResponseError],
    expected: type[Exception],
) -> None:
    mock_blob.download_blob.side_effect = http_error(status, code, cls)
    store = make_store(mock_service)
    with pytest.raises(expected):
        await store.download("payload/m1")


@pytest.mark.asyncio
async def test_download_read_failure_is_unavailable(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    downloader = MagicMock()
    downloader.read = AsyncMock(side_effect=ServiceRequestError("reset"))
    mock_blob.download_blob.return_value = downloader
    store = make_store(mock_service)

    stream = await store.download("payload/m1")
    with pytest.raises(PayloadStoreUnavailableError):
        await stream.read(10)


@pytest.mark.asyncio
async def test_delete(mock_service: MagicMock, mock_blob: MagicMock) -> None:
    store = make_store(mock_service)
    await store.delete("/payload/m1/")
    container = mock_service.get_container_client.return_value
    container.get_blob_client.assert_called_once_with("payload/m1")
    mock_blob.delete_blob.assert_awaited_once_with(delete_snapshots="include")


@pytest.mark.asyncio
async def test_delete_missing_blob_is_idempotent(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    mock_blob.delete_blob.side_effect = http_error(404, "BlobNotFound", ResourceNotFoundError)
    store = make_store(mock_service)
    await store.delete("payload/m1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "code", "expected"),
    [
        (404, "ContainerNotFound", PayloadStoreUnavailableError),
        (403, "AuthorizationFailure", PayloadAccessDeniedError),
        (503, "ServerBusy", PayloadStoreUnavailableError),
        (400, "InvalidHeaderValue", PayloadStoreUnclassifiedError),
    ],
)
async def test_delete_error_mapping(
    mock_service: MagicMock,
    mock_blob: MagicMock,
    status: int,
    code: str,
    expected: type[Exception],
) -> None:
    mock_blob.delete_blob.side_effect = http_error(status, code)
    store = make_store(mock_service)
    with pytest.raises(expected):
        await store.delete("payload/m1")


# ── SDK errors outside HTTP responses ────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [AzureError("boom"), ClientAuthenticationError("no credential")],
)
@pytest.mark.parametrize("operation", ["upload", "download", "delete"])
async def test_sdk_errors_never_escape_taxonomy(
    mock_service: MagicMock,
    mock_blob: MagicMock,
    error: AzureError,
    operation: str,
) -> None:
    mock_blob.upload_blob.side_effect = error
    mock_blob.download_blob.side_effect = error
    mock_blob.delete_blob.side_effect = error
    store = make_store(mock_service)

    with pytest.raises(PayloadStoreError) as exc_info:
        if operation == "upload":
            await store.upload(b"data", "payload/m1")
        elif operation == "download":
            await store.download("payload/m1")
        else:
            await store.delete("payload/m1")
    assert exc_info.value.__cause__ is error
    assert exc_info.value.reference == "payload/m1"


@pytest.mark.asyncio
async def test_plain_azure_error_on_upload_is_unclassified(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    original = AzureError("boom")
    mock_blob.upload_blob.side_effect = original
    store = make_store(mock_service)
    with pytest.raises(PayloadStoreUnclassifiedError) as exc_info:
        await store.upload(b"data", "payload/m1")
    assert exc_info.value.__cause__ is original
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        AzureError("stream aborted"),
        DecodeError("bad chunk"),
        IncompleteReadError("short read"),
    ],
)
async def test_download_read_sdk_error_is_unavailable(
    mock_service: MagicMock, mock_blob: MagicMock, error: AzureError
) -> None:
    downloader = MagicMock()
    downloader.readall = AsyncMock(side_effect=error)
    mock_blob.download_blob.return_value = downloader
    store = make_store(mock_service)

    stream = await store.download("payload/m1")
    with pytest.raises(PayloadStoreUnavailableError) as exc_info:
        await stream.read()
    assert exc_info.value.__cause__ is error


# ── Cancellation during a call ───────────────────────────────────────


@pytest.mark.asyncio
async def test_cancel_event_set_during_upload_abandons_request(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    cancel = asyncio.Event()
    started = asyncio.Event()
    upload_cancelled = False

    async def slow_upload(**kwargs: Any) -> dict[str, Any]:
        nonlocal upload_cancelled
        started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            upload_cancelled = True
            raise
        return {}

    mock_blob.upload_blob.side_effect = slow_upload
    store = make_store(mock_service)
    task = asyncio.create_task(
        store.upload(b"data", "payload/m1", cancel_event=cancel)
    )
    await started.wait()
    cancel.set()

    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=1)
    assert upload_cancelled is True


@pytest.mark.asyncio
async def test_cancel_event_set_during_delete(
    mock_service: MagicMock, mock_blob: MagicMock
) -> None:
    cancel = asyncio.Event()

    async def slow_delete(**kwargs: Any) -> None:
        cancel.set()
        await asyncio.Event().wait()

    mock_blob.delete_blob.side_effect = slow_delete
    store = make_store(mock_service)
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(
            store.delete("payload/m1", cancel_event=cancel), timeout=1
        )
