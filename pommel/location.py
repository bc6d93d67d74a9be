"""Location strings and their resolution into ``(scheme, bucket, key)``.

A location is either a path that exists on the local filesystem or a remote
reference of the form ``scheme://bucket/key``. Local paths win: a string that
names an existing file resolves as ``local`` even if it contains ``://``.
"""

import os
import posixpath
from dataclasses import dataclass
from typing import Final, Optional

from pommel.exceptions import InvalidURIError, MissingBucketOrKeyError

__all__ = ("LOCAL_SCHEME", "SCHEME_SEPARATOR", "CopyRequest", "Location", "resolve", "resolve_local", "scheme_of")

LOCAL_SCHEME: Final[str] = "local"
SCHEME_SEPARATOR: Final[str] = "://"


@dataclass(frozen=True)
class Location:
    """A resolved ``(scheme, bucket, key)`` triple."""

    scheme: str
    bucket: str
    key: str

    @property
    def path(self) -> str:
        """Bucket and key joined back together."""
        if self.scheme == LOCAL_SCHEME:
            return os.path.join(self.bucket, self.key)
        return posixpath.join(self.bucket, self.key)

    @property
    def is_local(self) -> bool:
        return self.scheme == LOCAL_SCHEME

    def __str__(self) -> str:
        if self.is_local:
            return self.path
        return f"{self.scheme}{SCHEME_SEPARATOR}{self.path}"


@dataclass(frozen=True)
class CopyRequest:
    """The two resolved ends of one copy."""

    source: Location
    destination: Location


def resolve_local(location: str) -> Optional[Location]:
    """Resolve ``location`` as a local filesystem path.

    Args:
        location: Candidate path.

    Returns:
        A ``local`` location when the path exists, otherwise ``None``.
    """
    if not location or not os.path.exists(location):
        return None
    bucket, key = os.path.split(location)
    return Location(LOCAL_SCHEME, bucket, key)


def resolve(location: str) -> Location:
    """Resolve a location string.

    Args:
        location: An existing local path or a ``scheme://bucket/key`` reference.

    Raises:
        InvalidURIError: The string is empty, lacks a scheme, or contains the separator more than once.
        MissingBucketOrKeyError: The remote path has no bucket or no key.

    Returns:
        The resolved location.
    """
    local = resolve_local(location)
    if local is not None:
        return local

    parts = location.split(SCHEME_SEPARATOR)
    if len(parts) != 2:  # noqa: PLR2004
        raise InvalidURIError(location)

    scheme, path = parts
    if not scheme:
        raise InvalidURIError(location, "missing scheme")

    bucket, key = posixpath.split(path)
    if not bucket or not key:
        raise MissingBucketOrKeyError(location)
    return Location(scheme, bucket, key)


def scheme_of(location: str) -> Optional[str]:
    """Return the scheme ``location`` would resolve to, without validating the rest.

    Existing local paths report ``local``. Strings that are neither local nor
    carry a ``scheme://`` prefix report ``None``; they never default to local.
    """
    if resolve_local(location) is not None:
        return LOCAL_SCHEME
    scheme, sep, _ = location.partition(SCHEME_SEPARATOR)
    if not sep or not scheme:
        return None
    return scheme
