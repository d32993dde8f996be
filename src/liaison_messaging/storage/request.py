"""Two-phase upload request builder.

A store seeds the builder with its required fields, hands it to the
caller's customization hook, then re-applies the required fields before
calling :meth:`UploadRequestBuilder.build`. Customization can add
parameters, metadata and tags but cannot remove or replace anything the
store depends on.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .keys import EXPIRES_MARKER_KEY


@dataclass(frozen=True)
class UploadRequest:
    """Immutable result of a build: client parameters, metadata and tags."""

    params: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)


class UploadRequestBuilder:
    """Accumulates the parameters of a single upload call."""

    def __init__(self) -> None:
        self._params: dict[str, Any] = {}
        self._metadata: dict[str, str] = {}
        self._tags: dict[str, str] = {}

    def with_param(self, name: str, value: Any) -> UploadRequestBuilder:
        self._params[name] = value
        return self

    def without_param(self, name: str) -> UploadRequestBuilder:
        self._params.pop(name, None)
        return self

    def with_metadata(self, key: str, value: str) -> UploadRequestBuilder:
        self._metadata[key] = value
        return self

    def without_metadata(self, key: str) -> UploadRequestBuilder:
        self._metadata.pop(key, None)
        return self

    def with_tag(self, key: str, value: str) -> UploadRequestBuilder:
        self._tags[key] = value
        return self

    def without_tag(self, key: str) -> UploadRequestBuilder:
        self._tags.pop(key, None)
        return self

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._metadata)

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)

    def enforce(
        self,
        params: dict[str, Any],
        metadata: dict[str, str],
        expires_marker: str | None = None,
        *,
        tag_expires_marker: bool = False,
    ) -> UploadRequestBuilder:
        """Re-apply required params and metadata over whatever is present."""
        self._params.update(params)
        self._metadata.update(metadata)
        if expires_marker is not None:
            self._metadata[EXPIRES_MARKER_KEY] = expires_marker
            if tag_expires_marker:
                self._tags[EXPIRES_MARKER_KEY] = expires_marker
        return self

    def build(self) -> UploadRequest:
        return UploadRequest(
            params=dict(self._params),
            metadata=dict(self._metadata),
            tags=dict(self._tags),
        )


UploadCustomizer = Callable[[UploadRequestBuilder], None]


def build_upload_request(
    required_params: dict[str, Any],
    required_metadata: dict[str, str],
    expires_marker: str | None,
    customize: UploadCustomizer | None,
    *,
    tag_expires_marker: bool = False,
) -> UploadRequest:
    """Seed, customize, enforce, build."""
    builder = UploadRequestBuilder().enforce(
        required_params,
        required_metadata,
        expires_marker,
        tag_expires_marker=tag_expires_marker,
    )
    if customize is not None:
        customize(builder)
    builder.enforce(
        required_params,
        required_metadata,
        expires_marker,
        tag_expires_marker=tag_expires_marker,
    )
    return builder.build()
