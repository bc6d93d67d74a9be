"""Flags for optional dependencies.

These only report whether a distribution is importable; nothing here stands in for it.
"""

from importlib.util import find_spec
from typing import Final

__all__ = ("FSSPEC_INSTALLED",)


def _is_installed(module: str) -> bool:
    return find_spec(module) is not None


FSSPEC_INSTALLED: Final[bool] = _is_installed("fsspec")
