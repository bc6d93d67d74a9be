"""Concrete providers.

``LocalProvider`` has no dependencies. ``VaultProvider`` lives in
:mod:`pommel.providers.vault` (httpx) and ``FSSpecProvider`` in
:mod:`pommel.providers.fsspec` (requires the ``fsspec`` extra).
"""

from pommel.providers.base import InstrumentedProvider
from pommel.providers.local import LocalProvider

__all__ = ("InstrumentedProvider", "LocalProvider")
