"""
Byte streams and output targets used by the fast-start processor.

Decouples the processor from where bytes live. Inputs and outputs are
awaitable, seekable binary streams: ``aiofiles`` file objects satisfy the
protocol directly, and ``MemoryStream`` adapts in-memory bytes or a
synchronous binary file object.
"""

import io
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


@runtime_checkable
class AsyncByteStream(Protocol):
    """
    Protocol for an awaitable, seekable binary stream.

    Implementations must provide:
    - read(): up to ``size`` bytes, fewer only at end of stream
    - seek(): absolute/relative positioning, returns the new position
    - tell(): current position
    """

    async def read(self, size: int = -1) -> bytes: ...

    async def seek(self, offset: int, whence: int = os.SEEK_SET) -> int: ...

    async def tell(self) -> int: ...


@runtime_checkable
class OutputTarget(Protocol):
    """
    Factory for the rewritten file.

    ``create()`` opens a writable stream. ``delete()`` is only invoked after a
    failure that followed ``create()`` and must not raise.
    """

    async def create(self): ...

    async def delete(self) -> None: ...


class MemoryStream:
    """Async adapter over a synchronous binary file object."""

    def __init__(self, source: bytes | bytearray | io.IOBase | None = None) -> None:
        if source is None:
            self._file = io.BytesIO()
        elif isinstance(source, (bytes, bytearray, memoryview)):
            self._file = io.BytesIO(bytes(source))
        else:
            self._file = source
        self.closed = False

    async def read(self, size: int = -1) -> bytes:
        return self._file.read(size)

    async def write(self, data: bytes) -> int:
        return self._file.write(data)

    async def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._file.seek(offset, whence)

    async def tell(self) -> int:
        return self._file.tell()

    async def flush(self) -> None:
        self._file.flush()

    async def close(self) -> None:
        # The wrapped object stays open so callers can still collect written bytes.
        self.closed = True

    def getvalue(self) -> bytes:
        return self._file.getvalue()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


async def stream_size(stream: AsyncByteStream) -> int:
    """Return the total length of a seekable stream, keeping its position."""
    position = await stream.tell()
    end = await stream.seek(0, os.SEEK_END)
    await stream.seek(position, os.SEEK_SET)
    return end


@asynccontextmanager
async def open_input(path: str | os.PathLike) -> AsyncIterator[AsyncByteStream]:
    """Open a file for reading as an async byte stream."""
    async with aiofiles.open(path, "rb") as f:
        yield f


class FileOutputTarget:
    """OutputTarget writing to a path on disk."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = path

    async def create(self):
        return await aiofiles.open(self.path, "wb")

    async def delete(self) -> None:
        try:
            await aiofiles.os.remove(self.path)
        except FileNotFoundError:
            pass
        except Exception as e:
            logger.error(f"Error removing output file {self.path}: {e}")


class MemoryOutputTarget:
    """OutputTarget collecting the rewritten file in memory."""

    def __init__(self) -> None:
        self.stream: MemoryStream | None = None
        self.deleted = False

    async def create(self) -> MemoryStream:
        self.stream = MemoryStream()
        self.deleted = False
        return self.stream

    async def delete(self) -> None:
        self.stream = None
        self.deleted = True

    @property
    def data(self) -> bytes:
        return self.stream.getvalue() if self.stream is not None else b""
