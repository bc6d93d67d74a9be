from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from pommel.location import Location

__all__ = (
    "CanceledError",
    "CopyError",
    "CopyValidationError",
    "DestinationWriteFailedError",
    "ImproperConfigurationError",
    "InvalidArgumentCountError",
    "InvalidURIError",
    "KeyNotFoundError",
    "LocationError",
    "MissingBucketOrKeyError",
    "MissingDependencyError",
    "NoValidSchemeError",
    "NotFoundError",
    "PommelError",
    "SourceReadFailedError",
    "StorageError",
    "StorageOperationFailedError",
    "UnknownSchemeError",
    "wrap_storage_exceptions",
)


class PommelError(Exception):
    """Base exception class from which all pommel exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``PommelError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(PommelError, ImportError):
    """Missing optional dependency.

    This exception is raised only when a module depends on a dependency that has not been installed.
    """

    def __init__(self, package: str, install_package: Optional[str] = None) -> None:
        super().__init__(
            f"Package {package!r} is not installed but required. You can install it by running "
            f"'pip install pommel[{install_package or package}]' to install pommel with the required extra "
            f"or 'pip install {install_package or package}' to install the package separately",
        )


class ImproperConfigurationError(PommelError):
    """Improper Configuration error.

    Raised when a provider or the CLI cannot be built from the supplied settings.
    """


# -- Location Errors --
class LocationError(PommelError):
    """Base class for errors raised while resolving a location string."""

    uri: str

    def __init__(self, message: str, uri: str = "") -> None:
        detail_message = message
        if uri:
            detail_message = f"{message}: {uri!r}"
        super().__init__(detail=detail_message)
        self.uri = uri


class InvalidURIError(LocationError):
    """The string is neither an existing local path nor a ``scheme://bucket/key`` reference."""

    def __init__(self, uri: str = "", message: str = "invalid uri") -> None:
        super().__init__(message, uri)


class MissingBucketOrKeyError(LocationError):
    """A remote reference is missing its bucket or its key."""

    def __init__(self, uri: str = "", message: str = "bucket and key required") -> None:
        super().__init__(message, uri)


# -- Copy Validation Errors --
class CopyValidationError(PommelError):
    """Base class for errors raised before a copy touches any backend."""


class InvalidArgumentCountError(CopyValidationError):
    """Copy requires exactly two non-empty location strings."""

    def __init__(self, count: int) -> None:
        super().__init__(detail=f"requires exactly two non-empty locations, got {count}")
        self.count = count


class NoValidSchemeError(CopyValidationError):
    """Neither side of a copy refers to a registered scheme."""

    def __init__(self, source: str, destination: str) -> None:
        super().__init__(detail=f"requires a registered scheme on at least one side: {source!r} -> {destination!r}")
        self.source = source
        self.destination = destination


class UnknownSchemeError(CopyValidationError):
    """No provider is registered for a scheme."""

    def __init__(self, scheme: str, side: str = "") -> None:
        message = f"no provider registered for scheme {scheme!r}"
        if side:
            message = f"{message} ({side})"
        super().__init__(detail=message)
        self.scheme = scheme
        self.side = side


# -- Storage Errors --
class StorageError(PommelError):
    """Base class for errors raised by a provider."""


class NotFoundError(StorageError):
    """The bucket does not exist in the backend."""

    def __init__(self, bucket: str, key: str = "", message: Optional[str] = None) -> None:
        super().__init__(detail=message or f"bucket {bucket!r} not found")
        self.bucket = bucket
        self.key = key


class KeyNotFoundError(NotFoundError):
    """The bucket exists but holds no value under the key."""

    def __init__(self, bucket: str, key: str, message: Optional[str] = None) -> None:
        super().__init__(bucket, key, message or f"key {key!r} not found in bucket {bucket!r}")


class StorageOperationFailedError(StorageError):
    """A backend operation failed for a reason other than a missing value."""


# -- Copy Errors --
class CopyError(PommelError):
    """Base class for I/O failures during a copy."""

    location: "Optional[Location]"

    def __init__(self, message: str, location: "Optional[Location]" = None) -> None:
        detail_message = message
        if location is not None:
            detail_message = f"{message}: {location}"
        super().__init__(detail=detail_message)
        self.location = location


class SourceReadFailedError(CopyError):
    """Reading from the source provider failed; nothing was written."""

    def __init__(self, location: "Optional[Location]" = None) -> None:
        super().__init__("failed to read source", location)


class DestinationWriteFailedError(CopyError):
    """Writing to the destination provider failed; its state for the key is undefined."""

    def __init__(self, location: "Optional[Location]" = None) -> None:
        super().__init__("failed to write destination", location)


class CanceledError(PommelError):
    """The operation's context was cancelled or its deadline passed."""

    def __init__(self, reason: str = "context canceled") -> None:
        super().__init__(detail=reason)
        self.reason = reason


@contextmanager
def wrap_storage_exceptions(message: str) -> Generator[None, None, None]:
    """Translate unexpected backend exceptions into :class:`StorageOperationFailedError`.

    pommel's own exceptions pass through untouched.

    Args:
        message: Message for the wrapping exception.

    Raises:
        StorageOperationFailedError: When the wrapped block raises anything else.
    """
    try:
        yield
    except PommelError:
        raise
    except Exception as exc:
        raise StorageOperationFailedError(message) from exc
