from collections.abc import Iterator
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pommel.context import Context

__all__ = ("ByteStream", "StorageClientProtocol")


@runtime_checkable
class ByteStream(Protocol):
    """A readable stream of byte chunks holding a releasable resource.

    Generators satisfy this protocol; ``close()`` runs their cleanup.
    """

    def __iter__(self) -> Iterator[bytes]: ...

    def close(self) -> None: ...


@runtime_checkable
class StorageClientProtocol(Protocol):
    """S3-like capability every backend exposes.

    ``get`` returns a stream positioned at the start of the value and raises
    :class:`~pommel.exceptions.NotFoundError` when the bucket is missing or
    :class:`~pommel.exceptions.KeyNotFoundError` when only the key is.
    ``put`` consumes the whole stream and persists it before returning.
    Both honor ``context`` and stop with :class:`~pommel.exceptions.CanceledError`.
    """

    def get(self, bucket: str, key: str, context: "Optional[Context]" = None) -> ByteStream:
        """Open the value stored at ``bucket``/``key``."""
        ...

    def put(self, stream: "Iterable[bytes]", bucket: str, key: str, context: "Optional[Context]" = None) -> None:
        """Store the content of ``stream`` at ``bucket``/``key``."""
        ...
