"""
Payload flattener: turns a JSON object payload into synthetic topic paths.

Only JSON objects are expanded. Arrays, scalars and null are leaves; payloads
that are empty, malformed, nested beyond the interpreter's recursion limit or
not an object produce nothing.
"""

import json
from collections.abc import Iterator
from typing import Any, NamedTuple

from smipmqtt.discovery.naming import join_path

# A payload containing none of these cannot be a JSON object or array.
_JSON_MARKERS = (b"{", b"[", b":")


class FlattenedPath(NamedTuple):
    """One synthetic path discovered in a payload."""

    path: str
    is_leaf: bool


def _as_bytes(payload: bytes | str) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def looks_like_json(payload: bytes | str) -> bool:
    """
    Cheap pre-check before a full parse.

    Rejects empty payloads and payloads with none of ``{``, ``[``, ``:``.
    Anything else is handed to the parser, so a bare JSON string that
    happens to contain a colon still counts as JSON-ish here.
    """
    data = _as_bytes(payload)
    if not data:
        return False
    return any(marker in data for marker in _JSON_MARKERS)


def parse_object(payload: bytes | str) -> dict[str, Any] | None:
    """Parse a payload, returning the top-level object or None."""
    if not looks_like_json(payload):
        return None
    try:
        value = json.loads(_as_bytes(payload))
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def walk(base_path: str, value: dict[str, Any], separator: str) -> Iterator[FlattenedPath]:
    """Yield paths for every property of an already parsed object, depth first."""
    for name, child in value.items():
        path = join_path(base_path, separator, name)
        if isinstance(child, dict):
            yield FlattenedPath(path, False)
            yield from walk(path, child, separator)
        else:
            yield FlattenedPath(path, True)


def flatten(base_path: str, payload: bytes | str, separator: str) -> list[FlattenedPath]:
    """
    Flatten a payload into ``(path, is_leaf)`` pairs rooted at ``base_path``.

    >>> [p.path for p in flatten("dev/1", b'{"a": 1, "b": {"c": 2}}', "/:/") if p.is_leaf]
    ['dev/1/:/a', 'dev/1/:/b/:/c']
    """
    obj = parse_object(payload)
    if obj is None:
        return []
    try:
        return list(walk(base_path, obj, separator))
    except RecursionError:
        # Parsed, but nested too deep to walk.
        return []
