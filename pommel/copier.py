"""Copy a value between two providers.

The copier arbitrates between backends: it resolves both locations, finds the
provider for each scheme and streams the source value into the destination.
Nothing is read or written until both sides have been validated, and there is no
rollback when a write fails halfway.
"""

import logging
from collections.abc import Iterator
from contextlib import closing
from typing import TYPE_CHECKING, Optional

from mypy_extensions import mypyc_attr

from pommel.context import Context
from pommel.exceptions import (
    CanceledError,
    DestinationWriteFailedError,
    InvalidArgumentCountError,
    NoValidSchemeError,
    SourceReadFailedError,
    UnknownSchemeError,
)
from pommel.location import CopyRequest, resolve, scheme_of
from pommel.utils.correlation import CorrelationContext
from pommel.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pommel.location import Location
    from pommel.protocol import ByteStream
    from pommel.registry import Provider, ProviderRegistry

__all__ = ("Copier", "copy")

logger = get_logger("copier")


class _GuardedStream:
    """Feeds the source stream to the destination while watching the context.

    Remembers whether iteration stopped because of the source or the context, so
    a failure surfacing from the destination's ``put`` can be attributed correctly
    however the destination wrapped it.
    """

    __slots__ = ("_context", "_stream", "bytes_read", "canceled", "source_error")

    def __init__(self, stream: "Iterable[bytes]", context: Context) -> None:
        self._stream = stream
        self._context = context
        self.source_error: Optional[BaseException] = None
        self.canceled: Optional[CanceledError] = None
        self.bytes_read = 0

    def _check(self) -> None:
        try:
            self._context.check()
        except CanceledError as exc:
            self.canceled = exc
            raise

    def __iter__(self) -> Iterator[bytes]:
        self._check()
        iterator = iter(self._stream)
        while True:
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except CanceledError as exc:
                self.canceled = exc
                raise
            except Exception as exc:
                self.source_error = exc
                raise
            self._check()
            self.bytes_read += len(chunk)
            yield chunk
        self._check()


@mypyc_attr(allow_interpreted_subclasses=True)
class Copier:
    """Streams values from one registered provider to another."""

    __slots__ = ("registry",)

    def __init__(self, registry: "ProviderRegistry") -> None:
        self.registry = registry

    def validate(self, *locations: str) -> None:
        """Check the shape of a copy request without touching any backend.

        Args:
            *locations: The location strings given by the caller.

        Raises:
            InvalidArgumentCountError: Not exactly two non-empty locations.
            NoValidSchemeError: Neither location has a registered scheme.
        """
        if len(locations) != 2 or not all(locations):  # noqa: PLR2004
            raise InvalidArgumentCountError(len([loc for loc in locations if loc]))

        schemes = self.registry.schemes()
        source, destination = locations
        if scheme_of(source) not in schemes and scheme_of(destination) not in schemes:
            raise NoValidSchemeError(source, destination)

    def _provider_for(self, location: "Location", side: str) -> "Provider":
        provider = self.registry.lookup(location.scheme)
        if provider is None:
            raise UnknownSchemeError(location.scheme, side)
        return provider

    def plan(self, *locations: str) -> "tuple[CopyRequest, Provider, Provider]":
        """Validate and resolve a copy request.

        Returns:
            The resolved request with the source and destination providers.
        """
        self.validate(*locations)
        request = CopyRequest(resolve(locations[0]), resolve(locations[1]))
        source = self._provider_for(request.source, "source")
        destination = self._provider_for(request.destination, "destination")
        return request, source, destination

    def open(self, location: str, context: Optional[Context] = None) -> "tuple[Location, ByteStream]":
        """Resolve a single location and open its value for reading.

        The caller owns the returned stream and must close it.

        Raises:
            InvalidArgumentCountError: ``location`` is empty.
            UnknownSchemeError: No provider is registered for the location's scheme.
            SourceReadFailedError: The provider could not open the value.
            CanceledError: The context was cancelled or expired.

        Returns:
            The resolved location and its stream.
        """
        if not location:
            raise InvalidArgumentCountError(0)
        context = context or Context()
        resolved = resolve(location)
        provider = self._provider_for(resolved, "source")
        context.check()
        try:
            stream = provider.client.get(resolved.bucket, resolved.key, context)
        except CanceledError:
            raise
        except Exception as exc:
            raise SourceReadFailedError(resolved) from exc
        return resolved, stream

    def copy(self, *locations: str, context: Optional[Context] = None) -> CopyRequest:
        """Copy the value at the first location to the second.

        Args:
            *locations: Source and destination location strings.
            context: Cancellation context honoured by both providers.

        Raises:
            SourceReadFailedError: The source provider could not produce the value.
            DestinationWriteFailedError: The destination provider failed while writing.
            CanceledError: The context was cancelled or expired.

        Returns:
            The resolved request that was carried out.
        """
        context = context or Context()
        with CorrelationContext.context():
            request, source, destination = self.plan(*locations)
            context.check()

            logger.info("Copying %s to %s", request.source, request.destination)
            try:
                stream = source.client.get(request.source.bucket, request.source.key, context)
            except CanceledError:
                raise
            except Exception as exc:
                logger.warning("Failed to read %s: %s", request.source, exc)
                raise SourceReadFailedError(request.source) from exc

            with closing(stream):
                guarded = _GuardedStream(stream, context)
                try:
                    destination.client.put(guarded, request.destination.bucket, request.destination.key, context)
                except Exception as exc:
                    if guarded.canceled is not None or isinstance(exc, CanceledError):
                        logger.info("Copy to %s canceled", request.destination)
                        raise (guarded.canceled or exc) from None
                    if guarded.source_error is not None:
                        logger.warning("Failed to read %s: %s", request.source, guarded.source_error)
                        raise SourceReadFailedError(request.source) from guarded.source_error
                    logger.warning("Failed to write %s: %s", request.destination, exc)
                    raise DestinationWriteFailedError(request.destination) from exc

            log_with_context(
                logger,
                logging.INFO,
                f"Copied {guarded.bytes_read} bytes from {request.source} to {request.destination}",
                bytes=guarded.bytes_read,
                source=str(request.source),
                destination=str(request.destination),
            )
            return request


def copy(
    registry: "ProviderRegistry", source: str, destination: str, context: Optional[Context] = None
) -> CopyRequest:
    """Copy ``source`` to ``destination`` using the providers in ``registry``."""
    return Copier(registry).copy(source, destination, context=context)
