"""Correlation id tracking for copy operations."""

import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

__all__ = ("CorrelationContext",)


class CorrelationContext:
    """Holds the correlation id of the operation running in the current context.

    Each copy runs under its own id so every log line emitted by the orchestrator
    and the two providers involved can be tied together.
    """

    _correlation_id: "ContextVar[Optional[str]]" = ContextVar("pommel_correlation_id", default=None)

    @classmethod
    def get(cls) -> Optional[str]:
        """Return the current correlation id, if any."""
        return cls._correlation_id.get()

    @classmethod
    def set(cls, correlation_id: Optional[str]) -> None:
        """Set or clear the current correlation id."""
        cls._correlation_id.set(correlation_id)

    @classmethod
    def generate(cls) -> str:
        """Return a new random correlation id."""
        return uuid.uuid4().hex

    @classmethod
    @contextmanager
    def context(cls, correlation_id: Optional[str] = None) -> Generator[str, None, None]:
        """Run a block under a correlation id, restoring the previous one afterwards.

        Args:
            correlation_id: Id to use. A new one is generated when omitted.

        Yields:
            The active correlation id.
        """
        correlation_id = correlation_id or cls.generate()
        token = cls._correlation_id.set(correlation_id)
        try:
            yield correlation_id
        finally:
            cls._correlation_id.reset(token)
