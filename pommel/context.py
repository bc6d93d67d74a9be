"""Cancellation and deadline handle passed through a copy.

A :class:`Context` is shared between the caller and the providers doing the I/O.
The caller may cancel it from any thread; providers poll it between chunks and
stop with :class:`~pommel.exceptions.CanceledError`.
"""

import threading
import time
from typing import Optional

from mypy_extensions import mypyc_attr

from pommel.exceptions import CanceledError

__all__ = ("Context",)


@mypyc_attr(allow_interpreted_subclasses=True)
class Context:
    """Thread-safe cancellation token with an optional deadline.

    Examples:
        context = Context.with_timeout(30)
        copier.copy("vault://secret/app/token", "./token", context=context)

        # from another thread
        context.cancel()
    """

    __slots__ = ("_deadline", "_event", "_parent", "_reason")

    def __init__(self, deadline: Optional[float] = None, parent: "Optional[Context]" = None) -> None:
        """Initialize a context.

        Args:
            deadline: Absolute ``time.monotonic()`` value after which the context counts as expired.
            parent: Context whose cancellation also cancels this one.
        """
        self._event = threading.Event()
        self._deadline = deadline
        self._parent = parent
        self._reason = ""

    @classmethod
    def with_timeout(cls, seconds: float, parent: "Optional[Context]" = None) -> "Context":
        """Create a context that expires ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds, parent=parent)

    @property
    def deadline(self) -> Optional[float]:
        """The earliest deadline of this context and its parents."""
        deadlines = [d for d in (self._deadline, self._parent.deadline if self._parent else None) if d is not None]
        return min(deadlines) if deadlines else None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` without one."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def cancel(self, reason: str = "context canceled") -> None:
        """Cancel the context. Later calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def reason(self) -> str:
        """Why the context is done, or an empty string while it is live."""
        if self._event.is_set():
            return self._reason
        if self._parent is not None and self._parent.cancelled:
            return self._parent.reason
        deadline = self.deadline
        if deadline is not None and time.monotonic() >= deadline:
            return "context deadline exceeded"
        return ""

    @property
    def cancelled(self) -> bool:
        """Whether the context was cancelled or its deadline passed."""
        return bool(self.reason)

    def check(self) -> None:
        """Raise if the context is done.

        Raises:
            CanceledError: The context was cancelled or expired.
        """
        reason = self.reason
        if reason:
            raise CanceledError(reason)
