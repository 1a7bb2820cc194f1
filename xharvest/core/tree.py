"""Safe lookups into loosely-typed decoded JSON."""

from typing import Any

Key = str | int


def dig(node: Any, *path: Key) -> Any | None:
    """
    Walk ``path`` through nested dicts/lists, returning None at the first
    missing key, out-of-range index, or node of the wrong type.

    Example:
        dig(payload, "data", "user", "result", "rest_id")
    """
    current = node
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict) or key not in current:
                return None
            current = current[key]
    return current


def dig_dict(node: Any, *path: Key) -> dict | None:
    """Like :func:`dig` but only returns dict values."""
    value = dig(node, *path)
    return value if isinstance(value, dict) else None


def dig_list(node: Any, *path: Key) -> list:
    """Like :func:`dig` but returns an empty list for anything that is not a list."""
    value = dig(node, *path)
    return value if isinstance(value, list) else []


def dig_str(node: Any, *path: Key) -> str | None:
    """String value at ``path``; numbers are stringified, blanks become None."""
    value = dig(node, *path)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def first_present(node: Any, *keys: str) -> Any | None:
    """Value of the first key present and non-empty in a dict."""
    if not isinstance(node, dict):
        return None
    for key in keys:
        value = node.get(key)
        if value not in (None, "", [], {}):
            return value
    return None
