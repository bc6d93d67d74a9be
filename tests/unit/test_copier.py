"""Unit tests for the Copier."""

import logging
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Optional

import pytest

from pommel.context import Context
from pommel.copier import Copier, copy
from pommel.exceptions import (
    CanceledError,
    DestinationWriteFailedError,
    InvalidArgumentCountError,
    InvalidURIError,
    KeyNotFoundError,
    MissingBucketOrKeyError,
    NoValidSchemeError,
    NotFoundError,
    SourceReadFailedError,
    UnknownSchemeError,
)
from pommel.location import Location
from pommel.registry import ProviderRegistry
from tests.conftest import FailingWriteClient, MemoryClient, RecordingStream


def _write(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def test_copy_local_file_to_vault(local_registry: ProviderRegistry, tmp_path: Path) -> None:
    """Test a local file's bytes reach the vault provider's put unchanged."""
    payload = b"s3cr3t-value\n" * 1000
    _write(tmp_path / "local" / "path" / "a.txt", payload)
    vault = MemoryClient()
    local_registry.register("vault", vault)

    request = copy(local_registry, "local/path/a.txt", "vault://secret/b")

    assert vault.buckets == {"secret": {"b": payload}}
    assert ("put", "secret", "b") in vault.calls
    assert request.source == Location("local", "local/path", "a.txt")
    assert request.destination == Location("vault", "secret", "b")


def test_copy_vault_to_local_file(local_registry: ProviderRegistry, tmp_path: Path) -> None:
    """Test a remote value is written to a new local file."""
    vault = MemoryClient()
    vault.buckets["secret/app"] = {"token": b"abc123"}
    local_registry.register("vault", vault)

    Copier(local_registry).copy("vault://secret/app/token", "local://out/token")

    assert (tmp_path / "out" / "token").read_bytes() == b"abc123"


def test_copy_between_remote_providers(registry: ProviderRegistry) -> None:
    """Test copying between two registered remote schemes."""
    source, destination = MemoryClient(), MemoryClient()
    source.buckets["a"] = {"k": b"value"}
    registry.register("src", source)
    registry.register("dst", destination)

    Copier(registry).copy("src://a/k", "dst://b/k2")

    assert destination.buckets == {"b": {"k2": b"value"}}
    assert source.streams[0].close_calls == 1


@pytest.mark.parametrize("locations", [(), ("vault://secret/b",), ("a", "b", "c"), ("", "vault://secret/b")])
def test_copy_requires_two_locations(registry: ProviderRegistry, locations: "tuple[str, ...]") -> None:
    """Test argument shape is validated first."""
    registry.register("vault", MemoryClient())

    with pytest.raises(InvalidArgumentCountError):
        Copier(registry).copy(*locations)


def test_copy_without_valid_scheme_performs_no_io(
    registry: ProviderRegistry, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test two unrecognised strings fail before any provider is called."""
    monkeypatch.chdir(tmp_path)
    client = MemoryClient()
    registry.register("vault", client)

    with pytest.raises(NoValidSchemeError):
        Copier(registry).copy("x", "y")

    assert client.calls == []


def test_copy_unknown_scheme_on_destination(local_registry: ProviderRegistry, tmp_path: Path) -> None:
    """Test an unregistered destination scheme is named in the error."""
    _write(tmp_path / "a.txt", b"a")

    with pytest.raises(UnknownSchemeError) as exc_info:
        Copier(local_registry).copy("a.txt", "s3://bucket/key")

    assert exc_info.value.scheme == "s3"
    assert exc_info.value.side == "destination"
    assert not list((tmp_path).glob("**/key"))


def test_copy_unknown_scheme_on_source(registry: ProviderRegistry) -> None:
    """Test an unregistered source scheme is named in the error."""
    client = MemoryClient()
    registry.register("vault", client)

    with pytest.raises(UnknownSchemeError) as exc_info:
        Copier(registry).copy("gs://bucket/key", "vault://secret/b")

    assert exc_info.value.scheme == "gs"
    assert exc_info.value.side == "source"
    assert client.calls == []


def test_copy_local_path_without_local_provider(registry: ProviderRegistry, tmp_path: Path) -> None:
    """Test local paths are never copied without a registered local provider."""
    source = _write(tmp_path / "a.txt", b"a")
    registry.register("vault", MemoryClient())

    with pytest.raises(UnknownSchemeError, match="local"):
        Copier(registry).copy(str(source), "vault://secret/b")


def test_copy_propagates_resolution_errors(registry: ProviderRegistry) -> None:
    """Test resolver errors reach the caller unchanged."""
    registry.register("vault", MemoryClient())
    copier = Copier(registry)

    with pytest.raises(MissingBucketOrKeyError):
        copier.copy("vault://secret/b", "vault://nokey")
    with pytest.raises(InvalidURIError):
        copier.copy("vault://secret/b", "a://b://c")


def test_copy_missing_source_key(registry: ProviderRegistry) -> None:
    """Test a missing key is reported as a source read failure caused by KeyNotFoundError."""
    source, destination = MemoryClient(), MemoryClient()
    source.buckets["secret"] = {}
    registry.register("vault", source)
    registry.register("mem", destination)

    with pytest.raises(SourceReadFailedError) as exc_info:
        Copier(registry).copy("vault://secret/missing", "mem://out/x")

    assert isinstance(exc_info.value.__cause__, KeyNotFoundError)
    assert exc_info.value.location == Location("vault", "secret", "missing")
    assert destination.calls == []


def test_copy_missing_source_bucket(registry: ProviderRegistry) -> None:
    """Test a missing bucket is distinguishable from a missing key."""
    registry.register("vault", MemoryClient())
    registry.register("mem", MemoryClient())

    with pytest.raises(SourceReadFailedError) as exc_info:
        Copier(registry).copy("vault://nowhere/x", "mem://out/x")

    cause = exc_info.value.__cause__
    assert isinstance(cause, NotFoundError)
    assert not isinstance(cause, KeyNotFoundError)


def test_copy_destination_failure_releases_source_once(registry: ProviderRegistry) -> None:
    """Test a failing put surfaces DestinationWriteFailedError and closes the source once."""
    source, destination = MemoryClient(), FailingWriteClient()
    source.buckets["a"] = {"k": b"0123456789"}
    registry.register("src", source)
    registry.register("dst", destination)

    with pytest.raises(DestinationWriteFailedError) as exc_info:
        Copier(registry).copy("src://a/k", "dst://b/k")

    assert exc_info.value.location == Location("dst", "b", "k")
    assert len(source.streams) == 1
    assert source.streams[0].close_calls == 1


def test_copy_source_failure_mid_stream(registry: ProviderRegistry) -> None:
    """Test a source that breaks while streaming is reported as a read failure."""

    class BrokenSource(MemoryClient):
        def get(self, bucket: str, key: str, context: Optional[Context] = None) -> RecordingStream:
            stream = RecordingStream([b"abc", b"def"], fail_after=1)
            self.streams.append(stream)
            return stream

    source, destination = BrokenSource(), MemoryClient()
    registry.register("src", source)
    registry.register("dst", destination)

    with pytest.raises(SourceReadFailedError) as exc_info:
        Copier(registry).copy("src://a/k", "dst://b/k")

    assert isinstance(exc_info.value.__cause__, OSError)
    assert source.streams[0].close_calls == 1
    assert destination.buckets == {}


def test_copy_with_cancelled_context(registry: ProviderRegistry) -> None:
    """Test a context cancelled up front stops the copy before any I/O."""
    client = MemoryClient()
    client.buckets["a"] = {"k": b"v"}
    registry.register("mem", client)
    context = Context()
    context.cancel()

    with pytest.raises(CanceledError):
        Copier(registry).copy("mem://a/k", "mem://b/k", context=context)

    assert client.calls == []


def test_copy_cancelled_mid_stream(registry: ProviderRegistry) -> None:
    """Test cancelling while streaming surfaces CanceledError and writes nothing."""
    context = Context()

    class CancellingSource(MemoryClient):
        def get(self, bucket: str, key: str, context_: Optional[Context] = None) -> RecordingStream:
            stream = RecordingStream([b"one", b"two", b"three"])
            self.streams.append(stream)
            return stream

    class CancellingSink(MemoryClient):
        def put(self, stream: Iterable[bytes], bucket: str, key: str, context_: Optional[Context] = None) -> None:
            received = []
            for chunk in stream:
                received.append(chunk)
                context.cancel("stopped by caller")
            self.buckets.setdefault(bucket, {})[key] = b"".join(received)

    source, destination = CancellingSource(), CancellingSink()
    registry.register("src", source)
    registry.register("dst", destination)

    with pytest.raises(CanceledError, match="stopped by caller"):
        Copier(registry).copy("src://a/k", "dst://b/k", context=context)

    assert destination.buckets == {}
    assert source.streams[0].close_calls == 1


def test_copy_cancellation_wrapped_by_destination_is_unwrapped(registry: ProviderRegistry) -> None:
    """Test cancellation stays CanceledError even if the destination rewraps it."""
    context = Context()
    source = MemoryClient()
    source.buckets["a"] = {"k": b"abcdefgh"}

    class WrappingSink(MemoryClient):
        def put(self, stream: Iterable[bytes], bucket: str, key: str, context_: Optional[Context] = None) -> None:
            try:
                for _ in stream:
                    context.cancel()
            except CanceledError as exc:
                msg = "upload aborted"
                raise RuntimeError(msg) from exc

    registry.register("src", source)
    registry.register("dst", WrappingSink())

    with pytest.raises(CanceledError):
        Copier(registry).copy("src://a/k", "dst://b/k", context=context)


def test_copy_expired_deadline(registry: ProviderRegistry) -> None:
    """Test an expired deadline is reported as cancellation."""
    registry.register("mem", MemoryClient())

    with pytest.raises(CanceledError, match="deadline"):
        Copier(registry).copy("mem://a/k", "mem://b/k", context=Context.with_timeout(0))


def test_copy_from_other_thread_can_be_cancelled(registry: ProviderRegistry) -> None:
    """Test a copy blocked in put stops when cancelled from another thread."""
    context = Context()
    started = threading.Event()

    class EndlessStream(RecordingStream):
        def __iter__(self) -> Iterator[bytes]:
            while True:
                yield b"x"

    class EndlessSource(MemoryClient):
        def get(self, bucket: str, key: str, context_: Optional[Context] = None) -> RecordingStream:
            stream = EndlessStream([])
            self.streams.append(stream)
            return stream

    class SlowSink(MemoryClient):
        def put(self, stream: Iterable[bytes], bucket: str, key: str, context_: Optional[Context] = None) -> None:
            for _ in stream:
                started.set()

    registry.register("src", EndlessSource())
    registry.register("dst", SlowSink())
    errors: list[BaseException] = []

    def run() -> None:
        try:
            Copier(registry).copy("src://a/k", "dst://b/k", context=context)
        except CanceledError as exc:
            errors.append(exc)

    worker = threading.Thread(target=run)
    worker.start()
    assert started.wait(5)
    context.cancel()
    worker.join(5)

    assert not worker.is_alive()
    assert len(errors) == 1


def test_open_reads_single_location(registry: ProviderRegistry) -> None:
    """Test open resolves one location and returns its stream."""
    client = MemoryClient()
    client.buckets["secret"] = {"b": b"value"}
    registry.register("vault", client)

    location, stream = Copier(registry).open("vault://secret/b")

    assert location == Location("vault", "secret", "b")
    assert b"".join(stream) == b"value"


def test_open_unknown_scheme(registry: ProviderRegistry) -> None:
    """Test open refuses unregistered schemes."""
    with pytest.raises(UnknownSchemeError):
        Copier(registry).open("vault://secret/b")


def test_copy_logs_summary_fields(registry: ProviderRegistry, caplog: pytest.LogCaptureFixture) -> None:
    """Test a finished copy logs its size and both ends as structured fields."""
    client = MemoryClient()
    client.buckets["a"] = {"k": b"0123456789"}
    registry.register("mem", client)
    caplog.set_level(logging.INFO, logger="pommel.copier")

    Copier(registry).copy("mem://a/k", "mem://b/k")

    summary = next(r for r in caplog.records if r.getMessage().startswith("Copied 10 bytes"))
    fields = summary.extra_fields  # type: ignore[attr-defined]
    assert fields == {"bytes": 10, "source": "mem://a/k", "destination": "mem://b/k"}
