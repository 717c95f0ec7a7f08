"""Resolve dot-separated field paths against decoded JSON values."""

from typing import Any, Optional

from data_binding.json_value import JsonKind, kind_of

PATH_SEPARATOR = "."


def split_path(path: str) -> list[str]:
    return path.split(PATH_SEPARATOR)


def resolve(root: Any, path: Optional[str]) -> Any:
    """Return the value at ``path`` inside ``root``, or None.

    Resolution is lenient: a missing key, an out-of-range index, or a null
    met before the path is exhausted all yield None rather than an error.

    Arrays accept integer segments (``"items.0.name"``). Any other segment
    applied to an array is looked up in its first element, mirroring how
    :func:`data_binding.introspection.discover` samples arrays, so every
    discovered path resolves against the payload it came from.

    Args:
        root: Decoded JSON value
        path: Dot-separated path such as ``"meta.source"``

    Returns:
        The addressed value, or None
    """
    if root is None or not path:
        return None

    current = root
    for segment in split_path(path):
        current = _step(current, segment)
        if current is None:
            return None
    return current


def _step(node: Any, segment: str) -> Any:
    kind = kind_of(node)
    if kind is JsonKind.OBJECT:
        return node.get(segment)
    if kind is JsonKind.ARRAY:
        if is_index(segment):
            index = int(segment)
            return node[index] if index < len(node) else None
        if not node:
            return None
        return _step(node[0], segment)
    # NULL, BOOL, NUMBER, STRING cannot be indexed
    return None


def is_index(segment: str) -> bool:
    """True for segments that address an array element (ASCII digits only)."""
    return segment.isascii() and segment.isdigit()
