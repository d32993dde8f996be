"""Lifetime of the aiobotocore S3 client shared by payload stores."""

from __future__ import annotations

import logging
from typing import Any

from aiobotocore.session import AioSession
from botocore.config import Config

logger = logging.getLogger("liaison.payload_store")


class S3ConnectionManager:
    """
    Owns one aiobotocore S3 client for any number of S3PayloadStores.

    The client is opened on first use and closed by :meth:`close`; stores
    never close it themselves. Point ``endpoint_url`` at MinIO, LocalStack or
    another S3-compatible service; those usually need path-style addressing.
    """

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        endpoint_url: str | None = None,
        path_style: bool = False,
        session: AioSession | None = None,
        **client_kwargs: Any,
    ) -> None:
        self._region = region_name
        self._session = session or AioSession()
        self._client_kwargs = dict(client_kwargs)
        if endpoint_url:
            self._client_kwargs["endpoint_url"] = endpoint_url
        if path_style:
            self._client_kwargs.setdefault(
                "config", Config(s3={"addressing_style": "path"})
            )
        self._client: Any = None
        self._client_cm: Any = None

    @property
    def endpoint_url(self) -> str | None:
        return self._client_kwargs.get("endpoint_url")

    async def get_client(self) -> Any:
        if self._client is None:
            self._client_cm = self._session.create_client(
                "s3",
                region_name=self._region,
                **self._client_kwargs,
            )
            self._client = await self._client_cm.__aenter__()
            logger.debug(
                "Opened S3 client (region=%s, endpoint=%s)",
                self._region,
                self.endpoint_url or "aws",
            )
        return self._client

    async def close(self) -> None:
        """Close the client; later calls to get_client() open a new one."""
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
            self._client_cm = None
            self._client = None

    async def health_check(self, bucket_name: str) -> bool:
        """HEAD the payload bucket; False when it is missing or unreachable."""
        try:
            client = await self.get_client()
            await client.head_bucket(Bucket=bucket_name)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.debug("S3 health check for bucket %s failed: %s", bucket_name, exc)
            return False
