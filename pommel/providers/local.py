"""Local file system provider.

A zero-dependency provider where a bucket is a directory and a key a file name.
Writes land in a temporary file next to the target and replace it only once the
whole stream has been consumed, so an interrupted put leaves the previous value
in place.
"""

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from mypy_extensions import mypyc_attr

from pommel.exceptions import KeyNotFoundError, NotFoundError, StorageOperationFailedError
from pommel.location import LOCAL_SCHEME
from pommel.providers._utils import DEFAULT_CHUNK_SIZE, FileStream
from pommel.providers.base import InstrumentedProvider

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pommel.context import Context

__all__ = ("LocalProvider",)


@mypyc_attr(allow_interpreted_subclasses=True)
class LocalProvider(InstrumentedProvider):
    """Provider backed by the local file system.

    Relative buckets are resolved against ``base_path`` (the working directory
    by default); absolute buckets are used as given. An empty bucket means
    ``base_path`` itself.
    """

    scheme = LOCAL_SCHEME

    def __init__(
        self, base_path: "Union[str, Path]" = "", chunk_size: int = DEFAULT_CHUNK_SIZE, file_mode: int = 0o644, **kwargs: Any
    ) -> None:
        """Initialize local provider.

        Args:
            base_path: Directory relative buckets are resolved against.
            chunk_size: Size of the chunks yielded by ``get``.
            file_mode: Permission bits of files written by ``put``.
            **kwargs: Passed to :class:`InstrumentedProvider`.
        """
        super().__init__(**kwargs)
        self.base_path = Path(base_path) if base_path else None
        self.chunk_size = chunk_size
        self.file_mode = file_mode

    @property
    def backend_type(self) -> str:
        return "local"

    def _resolve_bucket(self, bucket: str) -> Path:
        path = Path(os.path.expanduser(bucket)) if bucket else Path()
        if path.is_absolute():
            return path
        base = self.base_path if self.base_path is not None else Path.cwd()
        return base / path

    def resolve(self, bucket: str, key: str) -> Path:
        """Return the file path for ``bucket``/``key``."""
        return self._resolve_bucket(bucket) / key

    def _get(self, bucket: str, key: str, context: "Context") -> FileStream:
        directory = self._resolve_bucket(bucket)
        if not directory.is_dir():
            raise NotFoundError(bucket, key, f"directory {str(directory)!r} not found")
        path = directory / key
        if not path.is_file():
            raise KeyNotFoundError(bucket, key, f"file {str(path)!r} not found")
        try:
            handle = path.open("rb")
        except FileNotFoundError as exc:
            raise KeyNotFoundError(bucket, key, f"file {str(path)!r} not found") from exc
        except OSError as exc:
            msg = f"Failed to open {path}"
            raise StorageOperationFailedError(msg) from exc
        return FileStream(handle, self.chunk_size, context)

    def _put(self, stream: "Iterable[bytes]", bucket: str, key: str, context: "Context") -> None:
        if not key:
            msg = "Key cannot be empty."
            raise StorageOperationFailedError(msg)
        directory = self._resolve_bucket(bucket)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create directory {directory}"
            raise StorageOperationFailedError(msg) from exc

        target = directory / key
        tmp_path: Optional[Path] = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=directory)
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as handle:
                for chunk in stream:
                    context.check()
                    handle.write(chunk)
                context.check()
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_path, self.file_mode)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            msg = f"Failed to write {target}"
            raise StorageOperationFailedError(msg) from exc
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
