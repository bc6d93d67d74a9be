"""Configuration for pommel providers.

Settings are plain dataclasses. ``from_env`` fills the gaps from the user's
environment the same way the ``vault`` CLI does: the address from
``VAULT_ADDR`` and the token from ``VAULT_TOKEN`` or the token file written by
``vault login``. pommel never obtains a token itself.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Optional

from pommel.exceptions import ImproperConfigurationError
from pommel.providers._utils import DEFAULT_CHUNK_SIZE
from pommel.utils.logging import get_logger
from pommel.utils.module_loader import import_string

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pommel.registry import ProviderRegistry

__all__ = (
    "DEFAULT_TOKEN_PATH",
    "PommelConfig",
    "VaultConfig",
    "parse_provider_spec",
    "read_token",
)

logger = get_logger("config")

DEFAULT_TOKEN_PATH: Final[str] = "~/.vault-token"
ADDR_ENV_VAR: Final[str] = "VAULT_ADDR"
TOKEN_ENV_VAR: Final[str] = "VAULT_TOKEN"
NAMESPACE_ENV_VAR: Final[str] = "VAULT_NAMESPACE"
SUPPORTED_KV_VERSIONS: Final[frozenset[int]] = frozenset({1, 2})


def read_token(token_path: str = DEFAULT_TOKEN_PATH) -> str:
    """Read a Vault token from ``token_path``, expanding ``~``.

    Raises:
        ImproperConfigurationError: The file cannot be read.

    Returns:
        The token with surrounding whitespace removed.
    """
    path = Path(token_path).expanduser()
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as e:
        msg = f"invalid token path {path}"
        raise ImproperConfigurationError(msg) from e


@dataclass
class VaultConfig:
    """Connection settings for :class:`~pommel.providers.vault.VaultProvider`."""

    addr: str = ""
    token: str = field(default="", repr=False)
    token_path: str = DEFAULT_TOKEN_PATH
    namespace: str = ""
    kv_version: int = 1
    timeout: float = 30.0
    verify: bool = True

    def __post_init__(self) -> None:
        if self.kv_version not in SUPPORTED_KV_VERSIONS:
            msg = f"Unsupported KV version {self.kv_version}. Supported versions: 1, 2"
            raise ImproperConfigurationError(msg)

    @classmethod
    def from_env(cls, environ: "Optional[Mapping[str, str]]" = None, **overrides: Any) -> "VaultConfig":
        """Build a config from explicit values, falling back to the environment.

        Falsy overrides are ignored so CLI options left unset do not mask the environment.
        The token file is only read when no token was given; a missing file is not
        an error here because the token is only needed once Vault is used.

        Args:
            environ: Environment mapping. Defaults to ``os.environ``.
            **overrides: Field values taking precedence over the environment.

        Returns:
            The resolved config.
        """
        env = os.environ if environ is None else environ
        values = {name: value for name, value in overrides.items() if value}
        values.setdefault("addr", env.get(ADDR_ENV_VAR, ""))
        values.setdefault("namespace", env.get(NAMESPACE_ENV_VAR, ""))
        token = values.get("token") or env.get(TOKEN_ENV_VAR, "")
        if not token:
            token_path = values.get("token_path", DEFAULT_TOKEN_PATH)
            try:
                token = read_token(token_path)
            except ImproperConfigurationError:
                logger.debug("No Vault token found at %s", token_path)
        values["token"] = token
        return cls(**values)

    def require_token(self) -> str:
        """Return the token, reading ``token_path`` when none was given.

        Raises:
            ImproperConfigurationError: No token is available.
        """
        if self.token:
            return self.token
        return read_token(self.token_path)


def parse_provider_spec(spec: str) -> "tuple[str, str]":
    """Split a ``scheme=dotted.path`` provider spec.

    Raises:
        ImproperConfigurationError: The spec is malformed.
    """
    scheme, sep, dotted_path = spec.partition("=")
    scheme, dotted_path = scheme.strip(), dotted_path.strip()
    if not sep or not scheme or not dotted_path:
        msg = f"Invalid provider spec {spec!r}. Expected 'scheme=package.module.Class'"
        raise ImproperConfigurationError(msg)
    return scheme, dotted_path


@dataclass
class PommelConfig:
    """Everything needed to build a provider registry."""

    vault: VaultConfig = field(default_factory=VaultConfig)
    local_base_path: str = ""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    providers: "dict[str, str]" = field(default_factory=dict)
    """Extra providers as ``scheme -> dotted path`` of a client class or factory."""

    @classmethod
    def from_env(
        cls, environ: "Optional[Mapping[str, str]]" = None, provider_specs: "tuple[str, ...]" = (), **vault_overrides: Any
    ) -> "PommelConfig":
        providers = dict(parse_provider_spec(spec) for spec in provider_specs)
        return cls(vault=VaultConfig.from_env(environ, **vault_overrides), providers=providers)

    def create_registry(self) -> "ProviderRegistry":
        """Build a registry holding the configured providers.

        ``local`` is always registered, ``vault`` when an address is configured,
        then every extra provider in order. An extra provider may replace a built-in one.

        Raises:
            ImproperConfigurationError: An extra provider cannot be imported or built.

        Returns:
            The populated registry.
        """
        from pommel.providers.local import LocalProvider
        from pommel.registry import ProviderRegistry

        registry = ProviderRegistry()
        registry.register("local", LocalProvider(self.local_base_path, chunk_size=self.chunk_size))
        if self.vault.addr:
            from pommel.providers.vault import VaultProvider

            registry.register("vault", VaultProvider(self.vault, chunk_size=self.chunk_size))

        for scheme, dotted_path in self.providers.items():
            try:
                factory = import_string(dotted_path)
                client = factory()
            except ImportError as e:
                msg = f"Could not load provider {dotted_path!r} for scheme {scheme!r}"
                raise ImproperConfigurationError(msg) from e
            except TypeError as e:
                msg = f"Provider {dotted_path!r} cannot be built without arguments"
                raise ImproperConfigurationError(msg) from e
            registry.register(scheme, client)
        return registry
