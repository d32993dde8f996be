"""Readable handles returned by payload-store downloads."""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType

_CHUNK_SIZE = 81920


class PayloadStream(ABC):
    """Async, read-only view over a downloaded payload.

    Use as an async context manager so backend resources are released::

        async with await store.download(reference) as stream:
            data = await stream.readall()
    """

    @abstractmethod
    async def read(self, size: int = -1) -> bytes:
        """Read up to *size* bytes; ``-1`` reads to the end."""

    async def readall(self) -> bytes:
        """Read the remaining bytes in chunks."""
        buffer = bytearray()
        while True:
            chunk = await self.read(_CHUNK_SIZE)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)

    async def close(self) -> None:
        """Release backend resources. Safe to call more than once."""

    async def __aenter__(self) -> PayloadStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class BytesPayloadStream(PayloadStream):
    """PayloadStream over bytes already held in memory."""

    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    async def close(self) -> None:
        self._buffer.close()
