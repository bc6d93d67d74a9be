"""JSON encoding and decoding backed by msgspec."""

from typing import Any, Literal, overload

import msgspec

__all__ = ("decode_json", "encode_json")


def _default(value: Any) -> Any:
    return str(value)


_encoder = msgspec.json.Encoder(enc_hook=_default)
_decoder = msgspec.json.Decoder()


@overload
def encode_json(data: Any, *, as_bytes: Literal[False] = ...) -> str: ...


@overload
def encode_json(data: Any, *, as_bytes: Literal[True]) -> bytes: ...


def encode_json(data: Any, *, as_bytes: bool = False) -> "str | bytes":
    """Encode data to JSON.

    Objects msgspec cannot encode natively are rendered with ``str``.

    Args:
        data: Data to encode.
        as_bytes: Return bytes instead of str.

    Returns:
        The JSON document.
    """
    encoded = _encoder.encode(data)
    return encoded if as_bytes else encoded.decode("utf-8")


def decode_json(data: "str | bytes") -> Any:
    """Decode a JSON document."""
    return _decoder.decode(data)
