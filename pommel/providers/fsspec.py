"""Provider for any fsspec filesystem.

Extends pommel to every protocol fsspec knows (``memory``, ``s3``, ``gcs``,
``sftp``, ...). The bucket is a directory in the filesystem and the key a file
name within it.
"""

from typing import TYPE_CHECKING, Any, Optional, Union

from pommel._typing import FSSPEC_INSTALLED
from pommel.exceptions import (
    KeyNotFoundError,
    MissingDependencyError,
    NotFoundError,
    StorageOperationFailedError,
    wrap_storage_exceptions,
)
from pommel.providers._utils import DEFAULT_CHUNK_SIZE, FileStream
from pommel.providers.base import InstrumentedProvider

if TYPE_CHECKING:
    from collections.abc import Iterable

    from fsspec import AbstractFileSystem

    from pommel.context import Context

__all__ = ("FSSpecProvider",)


def _join_path(prefix: str, path: str) -> str:
    if not prefix:
        return path
    prefix = prefix.rstrip("/")
    path = path.lstrip("/")
    return f"{prefix}/{path}"


class FSSpecProvider(InstrumentedProvider):
    """Extended protocol support via fsspec.

    Examples:
        registry.register("s3", FSSpecProvider("s3", anon=False))
        registry.register("mem", FSSpecProvider("memory", scheme="mem"))
    """

    def __init__(
        self,
        fs: "Union[str, AbstractFileSystem]",
        scheme: Optional[str] = None,
        base_path: str = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        **fs_options: Any,
    ) -> None:
        """Initialize fsspec provider.

        Args:
            fs: Protocol name (``"memory"``, ``"s3"``, ``"s3://"``) or a filesystem instance.
            scheme: Scheme to register under. Defaults to the filesystem protocol.
            base_path: Prefix prepended to every bucket.
            chunk_size: Size of the chunks yielded by ``get``.
            **fs_options: Options for ``fsspec.filesystem`` when ``fs`` is a protocol name.

        Raises:
            MissingDependencyError: fsspec is not installed.
        """
        if not FSSPEC_INSTALLED:
            raise MissingDependencyError(package="fsspec", install_package="fsspec")

        super().__init__("FSSpec")

        import fsspec

        if isinstance(fs, str):
            protocol = fs.split("://")[0]
            self.fs = fsspec.filesystem(protocol, **fs_options)
        else:
            self.fs = fs
            fs_protocol = getattr(fs, "protocol", "unknown")
            protocol = fs_protocol if isinstance(fs_protocol, str) else fs_protocol[0]
        self.protocol = protocol
        self.scheme = scheme or protocol
        self.base_path = base_path.rstrip("/") if base_path else ""
        self.chunk_size = chunk_size

    @property
    def backend_type(self) -> str:
        return "fsspec"

    def _resolve_bucket(self, bucket: str) -> str:
        return _join_path(self.base_path, bucket) if self.base_path else bucket

    def _get(self, bucket: str, key: str, context: "Context") -> FileStream:
        directory = self._resolve_bucket(bucket)
        path = _join_path(directory, key)
        with wrap_storage_exceptions(f"Failed to stat {path}"):
            if not self.fs.isdir(directory):
                raise NotFoundError(bucket, key, f"directory {directory!r} not found")
            if not self.fs.isfile(path):
                raise KeyNotFoundError(bucket, key, f"object {path!r} not found")
        try:
            handle = self.fs.open(path, mode="rb")
        except FileNotFoundError as exc:
            raise KeyNotFoundError(bucket, key, f"object {path!r} not found") from exc
        except Exception as exc:
            msg = f"Failed to open {path}"
            raise StorageOperationFailedError(msg) from exc
        return FileStream(handle, self.chunk_size, context)

    def _put(self, stream: "Iterable[bytes]", bucket: str, key: str, context: "Context") -> None:
        directory = self._resolve_bucket(bucket)
        path = _join_path(directory, key)
        with wrap_storage_exceptions(f"Failed to write {path}"):
            self.fs.makedirs(directory, exist_ok=True)
            # fsspec files commit on close; abort by discarding the handle instead
            handle = self.fs.open(path, mode="wb")
            try:
                for chunk in stream:
                    context.check()
                    handle.write(chunk)
                context.check()
            except BaseException:
                discard = getattr(handle, "discard", None)
                if callable(discard):
                    discard()
                else:
                    handle.close()
                raise
            handle.close()
