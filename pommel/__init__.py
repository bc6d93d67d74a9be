"""pommel: move secrets and blobs between backends through one S3-like interface.

Values are addressed by ``(scheme, bucket, key)``. A :class:`ProviderRegistry`
maps schemes to backends and a :class:`Copier` streams a value from one backend
to another::

    from pommel import Copier, ProviderRegistry
    from pommel.providers import LocalProvider
    from pommel.providers.vault import VaultProvider

    registry = ProviderRegistry()
    registry.register("local", LocalProvider())
    registry.register("vault", VaultProvider())

    Copier(registry).copy("./db_password.txt", "vault://secret/app/db_password")
"""

from pommel import exceptions
from pommel.config import PommelConfig, VaultConfig
from pommel.context import Context
from pommel.copier import Copier, copy
from pommel.location import CopyRequest, Location, resolve
from pommel.protocol import ByteStream, StorageClientProtocol
from pommel.registry import Provider, ProviderRegistry

__all__ = (
    "ByteStream",
    "Context",
    "Copier",
    "CopyRequest",
    "Location",
    "PommelConfig",
    "Provider",
    "ProviderRegistry",
    "StorageClientProtocol",
    "VaultConfig",
    "copy",
    "exceptions",
    "resolve",
)
