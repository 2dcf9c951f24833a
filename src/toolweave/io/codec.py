"""orjson serialization for wire framing and cache fingerprints.

orjson is a core dependency - no fallback to stdlib json.

Usage:
    >>> from toolweave.io.codec import encode_line, decode
    >>> encode_line({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    b'{"jsonrpc":"2.0","id":1,"method":"tools/list"}\\n'
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from toolweave.foundation.errors import JsonValue

_CANONICAL = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS
_INT64_MIN, _UINT64_MAX = -(2**63), 2**64 - 1


def encode(data: JsonValue) -> bytes:
    """Encode to JSON bytes."""
    return orjson.dumps(data)


def decode(data: bytes | str) -> JsonValue:
    """Decode from JSON bytes/str. Raises orjson.JSONDecodeError on malformed input."""
    return orjson.loads(data)


def encode_str(data: JsonValue) -> str:
    """Encode to JSON string."""
    return orjson.dumps(data).decode()


def encode_line(data: JsonValue) -> bytes:
    """Encode one newline-terminated frame."""
    return orjson.dumps(data, option=orjson.OPT_APPEND_NEWLINE)


def encode_pretty(data: JsonValue) -> str:
    """Indented JSON for model-facing text."""
    return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode()


def canonical(data: JsonValue) -> bytes:
    """Key-sorted encoding: maps equal as key/value sets encode identically.

    Sorting applies recursively to nested maps. Values orjson cannot
    serialize natively fall back to str(), including integers outside
    the 64-bit range.
    """
    try:
        return orjson.dumps(data, default=str, option=_CANONICAL)
    except orjson.JSONEncodeError:
        return orjson.dumps(_stringify_unencodable(data), default=str, option=_CANONICAL)


def _stringify_unencodable(value: Any) -> Any:
    match value:
        case bool() | None | float() | str():
            return value
        case int():
            return value if _INT64_MIN <= value <= _UINT64_MAX else str(value)
        case dict():
            return {k if isinstance(k, str) else str(k): _stringify_unencodable(v) for k, v in value.items()}
        case list() | tuple():
            return [_stringify_unencodable(v) for v in value]
        case _:
            return str(value)


DecodeError = orjson.JSONDecodeError
EncodeError = orjson.JSONEncodeError
