"""HashiCorp Vault provider.

Talks to Vault's KV secrets engine over its HTTP API using httpx. The bucket is
the secret path and the key the field inside the secret, so
``vault://secret/app/db_password`` reads field ``db_password`` of secret
``secret/app``.

Vault stores whole JSON documents, so ``put`` buffers the stream before sending
and merges the field into the secret's existing fields.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

import httpx
from mypy_extensions import mypyc_attr

from pommel._serialization import decode_json, encode_json
from pommel.config import VaultConfig
from pommel.exceptions import (
    CanceledError,
    ImproperConfigurationError,
    KeyNotFoundError,
    NotFoundError,
    StorageOperationFailedError,
    wrap_storage_exceptions,
)
from pommel.providers._utils import DEFAULT_CHUNK_SIZE, BytesStream, read_all
from pommel.providers.base import InstrumentedProvider

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pommel.context import Context

__all__ = ("VaultProvider",)

API_PREFIX: Final[str] = "/v1"
TOKEN_HEADER: Final[str] = "X-Vault-Token"
NAMESPACE_HEADER: Final[str] = "X-Vault-Namespace"


def _encode_value(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return encode_json(value, as_bytes=True)


@mypyc_attr(allow_interpreted_subclasses=True)
class VaultProvider(InstrumentedProvider):
    """Provider reading and writing fields of Vault KV secrets.

    Examples:
        provider = VaultProvider(VaultConfig.from_env(addr="https://vault.example.com"))
        stream = provider.get("secret/app", "db_password")
    """

    scheme = "vault"

    def __init__(
        self,
        config: VaultConfig | None = None,
        client: httpx.Client | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        **kwargs: Any,
    ) -> None:
        """Initialize Vault provider.

        Args:
            config: Connection settings. Defaults to :meth:`VaultConfig.from_env`.
            client: Preconfigured httpx client. Built from ``config`` when omitted.
            chunk_size: Size of the chunks yielded by ``get``.
            **kwargs: Passed to :class:`InstrumentedProvider`.

        Raises:
            ImproperConfigurationError: Neither a client nor an address is available.
        """
        super().__init__(**kwargs)
        self.config = config or VaultConfig.from_env()
        self.chunk_size = chunk_size
        if client is None:
            if not self.config.addr:
                msg = "Vault address is required. Set VAULT_ADDR or pass --addr."
                raise ImproperConfigurationError(msg)
            client = httpx.Client(base_url=self.config.addr, timeout=self.config.timeout, verify=self.config.verify)
        self.client = client

    @property
    def backend_type(self) -> str:
        return "vault"

    def close(self) -> None:
        self.client.close()

    def _headers(self) -> dict[str, str]:
        headers = {TOKEN_HEADER: self.config.require_token()}
        if self.config.namespace:
            headers[NAMESPACE_HEADER] = self.config.namespace
        return headers

    def _secret_url(self, bucket: str) -> str:
        path = bucket.strip("/")
        if not path:
            msg = "Vault secret path cannot be empty."
            raise StorageOperationFailedError(msg)
        if self.config.kv_version == 1:
            return f"{API_PREFIX}/{path}"
        mount, _, rest = path.partition("/")
        if not rest:
            msg = f"KV v2 secret path must include a mount and a name: {bucket!r}"
            raise StorageOperationFailedError(msg)
        return f"{API_PREFIX}/{mount}/data/{rest}"

    def _request(self, method: str, bucket: str, context: Context, content: bytes | None = None) -> httpx.Response:
        url = self._secret_url(bucket)
        headers = self._headers()
        kwargs: dict[str, Any] = {}
        if content is not None:
            headers["Content-Type"] = "application/json"
            kwargs["content"] = content
        remaining = context.remaining()
        deadline_bound = remaining is not None and remaining <= self.config.timeout
        if deadline_bound:
            kwargs["timeout"] = remaining
        with wrap_storage_exceptions(f"Vault request {method} {url} failed"):
            try:
                response = self.client.request(method, url, headers=headers, **kwargs)
            except httpx.HTTPError as exc:
                # the deadline doubles as the request timeout
                if context.cancelled or (deadline_bound and isinstance(exc, httpx.TimeoutException)):
                    raise CanceledError(context.reason or "context deadline exceeded") from exc
                raise
        context.check()
        if response.status_code == httpx.codes.FORBIDDEN:
            msg = f"Permission denied for {url}. Is the token valid?"
            raise StorageOperationFailedError(msg)
        return response

    def read_secret(self, bucket: str, context: Context) -> dict[str, Any]:
        """Return every field of the secret at ``bucket``.

        Raises:
            NotFoundError: The secret does not exist.
            StorageOperationFailedError: Vault answered with an error.
        """
        response = self._request("GET", bucket, context)
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(bucket, message=f"secret {bucket!r} not found")
        if response.is_error:
            msg = f"Vault read of {bucket!r} failed with status {response.status_code}"
            raise StorageOperationFailedError(msg)

        with wrap_storage_exceptions(f"Vault returned an invalid document for {bucket!r}"):
            payload = decode_json(response.content)
        data = payload.get("data") if isinstance(payload, dict) else None
        if self.config.kv_version != 1 and isinstance(data, dict):
            data = data.get("data")
        if not isinstance(data, dict):
            msg = f"Vault returned no data for {bucket!r}"
            raise StorageOperationFailedError(msg)
        return dict(data)

    def write_secret(self, bucket: str, data: dict[str, Any], context: Context) -> None:
        """Replace the fields of the secret at ``bucket`` with ``data``."""
        body = data if self.config.kv_version == 1 else {"data": data}
        response = self._request("POST", bucket, context, content=encode_json(body, as_bytes=True))
        if response.is_error:
            msg = f"Vault write of {bucket!r} failed with status {response.status_code}"
            raise StorageOperationFailedError(msg)

    def _get(self, bucket: str, key: str, context: Context) -> BytesStream:
        data = self.read_secret(bucket, context)
        if key not in data:
            raise KeyNotFoundError(bucket, key, f"field {key!r} not found in secret {bucket!r}")
        return BytesStream(_encode_value(data[key]), self.chunk_size)

    def _put(self, stream: Iterable[bytes], bucket: str, key: str, context: Context) -> None:
        payload = read_all(stream, context)
        try:
            value = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"Vault values must be UTF-8 text; {bucket}/{key} received binary data"
            raise StorageOperationFailedError(msg) from exc

        try:
            data = self.read_secret(bucket, context)
        except NotFoundError:
            data = {}
        data[key] = value
        context.check()
        self.write_secret(bucket, data, context)
