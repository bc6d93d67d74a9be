"""Dotted-path imports for user supplied providers."""

import importlib
from typing import Any

__all__ = ("import_string",)


def import_string(dotted_path: str) -> "Any":
    """Dotted Path Import.

    Import a dotted module path and return the attribute/class designated by the
    last name in the path. Both ``package.module.Class`` and ``package.module:Class``
    are accepted.

    Args:
        dotted_path: The path of the object to import.

    Raises:
        ImportError: Could not import the module or find the attribute.

    Returns:
        object: The imported object.
    """
    if ":" in dotted_path:
        module_path, _, attr_path = dotted_path.partition(":")
        attrs = attr_path.split(".") if attr_path else []
        try:
            obj = importlib.import_module(module_path)
        except ImportError as e:
            msg = f"Could not import '{dotted_path}': {e}"
            raise ImportError(msg) from e
    else:
        parts = dotted_path.split(".")
        for i in range(len(parts), 0, -1):
            module_path = ".".join(parts[:i])
            try:
                obj = importlib.import_module(module_path)
                break
            except ModuleNotFoundError:
                continue
        else:
            msg = f"{dotted_path} doesn't look like a module path"
            raise ImportError(msg)
        attrs = parts[i:]

    for attr in attrs:
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            msg = f"Module '{module_path}' has no attribute '{attr}' in '{dotted_path}'"
            raise ImportError(msg) from e
    return obj
