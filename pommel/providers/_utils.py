"""Shared stream helpers for providers."""

from collections.abc import Iterator
from typing import IO, TYPE_CHECKING, Final, Optional

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pommel.context import Context

__all__ = ("DEFAULT_CHUNK_SIZE", "BytesStream", "FileStream", "read_all")

DEFAULT_CHUNK_SIZE: Final[int] = 65536


class FileStream:
    """Chunked reader over an already opened binary file.

    The file is opened by the provider's ``get`` so open errors surface there;
    this object only owns the handle until :meth:`close`.
    """

    __slots__ = ("_chunk_size", "_context", "_file")

    def __init__(self, file: "IO[bytes]", chunk_size: int = DEFAULT_CHUNK_SIZE, context: "Optional[Context]" = None) -> None:
        self._file = file
        self._chunk_size = chunk_size
        self._context = context

    @property
    def closed(self) -> bool:
        return bool(self._file.closed)

    def __iter__(self) -> Iterator[bytes]:
        while True:
            if self._context is not None:
                self._context.check()
            chunk = self._file.read(self._chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self._file.close()


class BytesStream:
    """Stream over a value that was fetched whole, as HTTP secret stores return them."""

    __slots__ = ("_chunk_size", "_data", "closed")

    def __init__(self, data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._data = data
        self._chunk_size = chunk_size
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        view = memoryview(self._data)
        for start in range(0, len(view), self._chunk_size):
            yield bytes(view[start : start + self._chunk_size])

    def close(self) -> None:
        self.closed = True
        self._data = b""


def read_all(stream: "Iterable[bytes]", context: "Optional[Context]" = None) -> bytes:
    """Drain ``stream`` into memory, checking ``context`` between chunks."""
    buffer = bytearray()
    for chunk in stream:
        if context is not None:
            context.check()
        buffer.extend(chunk)
    if context is not None:
        context.check()
    return bytes(buffer)
