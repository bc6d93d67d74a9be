"""Base class for instrumented providers.

This module provides a base class that adds structured logging to every
``get``/``put``, tagged with the backend, the coordinates and the correlation id
of the copy in progress.

Concrete providers inherit from it and implement ``_get`` and ``_put``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from pommel.context import Context
from pommel.exceptions import CanceledError, NotFoundError
from pommel.utils.correlation import CorrelationContext
from pommel.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pommel.protocol import ByteStream

__all__ = ("InstrumentedProvider",)


class _CountingStream:
    __slots__ = ("_stream", "count")

    def __init__(self, stream: Iterable[bytes]) -> None:
        self._stream = stream
        self.count = 0

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._stream:
            self.count += len(chunk)
            yield chunk


class InstrumentedProvider(ABC):
    """Base class for instrumented providers.

    Implements :class:`~pommel.protocol.StorageClientProtocol`. Every call is
    logged at debug level on start, info on success and warning/error on failure.
    """

    scheme: str = ""

    def __init__(self, backend_name: str | None = None) -> None:
        """Initialize the instrumented provider.

        Args:
            backend_name: Name of the backend for logging
        """
        self.backend_name = backend_name or self.__class__.__name__
        self.logger = get_logger(f"providers.{self.backend_name}")

    @property
    def backend_type(self) -> str:
        """Return the backend type identifier.

        Default implementation uses the class name.
        """
        return self.__class__.__name__.replace("Provider", "").lower()

    def _extra(self, bucket: str, key: str, **fields: Any) -> dict[str, Any]:
        return {
            "backend": self.backend_type,
            "bucket": bucket,
            "key": key,
            "correlation_id": CorrelationContext.get(),
            **fields,
        }

    def _log_operation_error(self, op_name: str, e: Exception, bucket: str, key: str) -> None:
        extra = self._extra(bucket, key, error_type=type(e).__name__)
        if isinstance(e, (NotFoundError, CanceledError)):
            self.logger.warning("%s %s/%s failed: %s", op_name, bucket, key, e, extra=extra)
        else:
            self.logger.error("%s %s/%s failed: %s", op_name, bucket, key, e, extra=extra)

    def get(self, bucket: str, key: str, context: Context | None = None) -> ByteStream:
        """Open the value at ``bucket``/``key``.

        Args:
            bucket: Backend grouping holding the value.
            key: Identifier of the value within the bucket.
            context: Cancellation context.

        Returns:
            A stream positioned at the start of the value.
        """
        context = context or Context()
        op_name = "get"
        self.logger.debug("Opening %s/%s", bucket, key, extra=self._extra(bucket, key))
        try:
            context.check()
            stream = self._get(bucket, key, context)
        except Exception as e:
            self._log_operation_error(op_name, e, bucket, key)
            raise
        self.logger.info("Opened %s/%s", bucket, key, extra=self._extra(bucket, key))
        return stream

    def put(self, stream: Iterable[bytes], bucket: str, key: str, context: Context | None = None) -> None:
        """Store the content of ``stream`` at ``bucket``/``key``.

        Args:
            stream: Byte chunks to store. Consumed entirely.
            bucket: Backend grouping to write into.
            key: Identifier of the value within the bucket.
            context: Cancellation context.
        """
        context = context or Context()
        op_name = "put"
        counting = _CountingStream(stream)
        self.logger.debug("Writing %s/%s", bucket, key, extra=self._extra(bucket, key))
        try:
            context.check()
            self._put(counting, bucket, key, context)
        except Exception as e:
            self._log_operation_error(op_name, e, bucket, key)
            raise
        self.logger.info(
            "Wrote %d bytes to %s/%s", counting.count, bucket, key, extra=self._extra(bucket, key, size_bytes=counting.count)
        )

    @abstractmethod
    def _get(self, bucket: str, key: str, context: Context) -> ByteStream:
        """Actual implementation of get in subclasses."""
        raise NotImplementedError

    @abstractmethod
    def _put(self, stream: Iterable[bytes], bucket: str, key: str, context: Context) -> None:
        """Actual implementation of put in subclasses."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(scheme={self.scheme!r})"
