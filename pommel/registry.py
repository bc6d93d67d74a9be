"""Thread-safe registry of providers keyed by scheme.

The registry is a plain value: build one per process or session and hand it to
:class:`~pommel.copier.Copier`. There is no module-level instance.
"""

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from mypy_extensions import mypyc_attr

from pommel.utils.logging import get_logger

if TYPE_CHECKING:
    from pommel.protocol import StorageClientProtocol

__all__ = ("Provider", "ProviderRegistry")

logger = get_logger("registry")


@dataclass(frozen=True)
class Provider:
    """A storage client registered under a scheme."""

    scheme: str
    client: "StorageClientProtocol"


@mypyc_attr(allow_interpreted_subclasses=True)
class ProviderRegistry:
    """Registry of active providers.

    Providers live in a single insertion-ordered dict, so the registration order
    reported by :meth:`schemes` can never disagree with the providers that can be
    looked up. One lock guards every read and mutation of that dict; it is never
    held across provider I/O.

    Examples:
        registry = ProviderRegistry()
        registry.register("local", LocalProvider())
        registry.register("vault", VaultProvider(VaultConfig.from_env()))

        registry.schemes()  # ("local", "vault")
        registry.lookup("vault").client
    """

    __slots__ = ("_lock", "_providers")

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._lock = threading.Lock()

    def add_provider(self, provider: Provider) -> None:
        """Register ``provider`` under its scheme.

        An existing registration for the scheme is replaced and keeps its place in the order.

        Args:
            provider: Provider to register.

        Raises:
            ValueError: The provider has an empty scheme.
        """
        if not provider.scheme:
            msg = "Provider scheme cannot be empty."
            raise ValueError(msg)
        with self._lock:
            replaced = provider.scheme in self._providers
            self._providers[provider.scheme] = provider
        logger.debug("%s provider for scheme %s", "Replaced" if replaced else "Registered", provider.scheme)

    def register(self, scheme: str, client: "StorageClientProtocol") -> Provider:
        """Wrap ``client`` in a :class:`Provider` for ``scheme`` and register it.

        Returns:
            The registered provider.
        """
        provider = Provider(scheme, client)
        self.add_provider(provider)
        return provider

    def remove_provider(self, scheme: str) -> None:
        """Unregister ``scheme``. Unknown schemes are ignored."""
        with self._lock:
            removed = self._providers.pop(scheme, None)
        if removed is not None:
            logger.debug("Removed provider for scheme %s", scheme)

    def lookup(self, scheme: str) -> Optional[Provider]:
        """Return the provider registered for ``scheme``, or ``None``."""
        with self._lock:
            return self._providers.get(scheme)

    def schemes(self) -> tuple[str, ...]:
        """Return the registered schemes in registration order."""
        with self._lock:
            return tuple(self._providers)

    def clear(self) -> None:
        """Unregister every provider."""
        with self._lock:
            self._providers.clear()

    def __contains__(self, scheme: object) -> bool:
        with self._lock:
            return scheme in self._providers

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(schemes={list(self.schemes())!r})"
