from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import pytest

from pommel.context import Context
from pommel.exceptions import KeyNotFoundError, NotFoundError, StorageOperationFailedError
from pommel.providers.local import LocalProvider
from pommel.registry import ProviderRegistry

here = Path(__file__).parent
root_path = here.parent


class RecordingStream:
    """Stream over fixed chunks that counts how often it is closed."""

    def __init__(self, chunks: Iterable[bytes], fail_after: int | None = None) -> None:
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.close_calls = 0

    def __iter__(self) -> Iterator[bytes]:
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                msg = "source connection dropped"
                raise OSError(msg)
            yield chunk

    def close(self) -> None:
        self.close_calls += 1


class MemoryClient:
    """In-memory storage client recording every call."""

    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.streams: list[RecordingStream] = []
        self.fail_put: Exception | None = None
        self.fail_get: Exception | None = None
        self.chunk_size = 4

    def get(self, bucket: str, key: str, context: Context | None = None) -> RecordingStream:
        self.calls.append(("get", bucket, key))
        if self.fail_get is not None:
            raise self.fail_get
        if bucket not in self.buckets:
            raise NotFoundError(bucket, key)
        if key not in self.buckets[bucket]:
            raise KeyNotFoundError(bucket, key)
        data = self.buckets[bucket][key]
        stream = RecordingStream(data[i : i + self.chunk_size] for i in range(0, len(data), self.chunk_size))
        self.streams.append(stream)
        return stream

    def put(self, stream: Iterable[bytes], bucket: str, key: str, context: Context | None = None) -> None:
        self.calls.append(("put", bucket, key))
        data = b"".join(stream)
        if self.fail_put is not None:
            raise self.fail_put
        self.buckets.setdefault(bucket, {})[key] = data


class FailingWriteClient(MemoryClient):
    """Client whose writes always fail after consuming the stream."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_put = StorageOperationFailedError("disk full")


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry()


@pytest.fixture
def memory_client() -> MemoryClient:
    return MemoryClient()


@pytest.fixture
def local_registry(registry: ProviderRegistry, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ProviderRegistry:
    """Registry with a local provider, running from inside ``tmp_path``."""
    monkeypatch.chdir(tmp_path)
    registry.register("local", LocalProvider())
    return registry
