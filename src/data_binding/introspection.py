"""Discover displayable leaf fields of an unknown JSON payload."""

from typing import Any, List

from data_binding.json_value import JsonKind, kind_of, SCALAR_KINDS
from data_binding.path_resolver import PATH_SEPARATOR, is_index


def discover(sample: Any, prefix: str = "") -> List[str]:
    """Return the ordered, de-duplicated dot-paths of scalar leaves in ``sample``.

    Objects are walked depth-first in key order. Arrays are sampled at index 0
    only, on the assumption that every element shares the first one's shape.
    Nulls are pruned. A path is emitted only where an object member holds a
    string, number or boolean; the first occurrence of a path wins. Arrays of
    scalars therefore contribute no path, since no path resolves to a scalar
    through them.

    Members that :func:`data_binding.path_resolver.resolve` cannot address are
    skipped along with everything below them: keys containing the path
    separator, an empty key at the root, and digit keys of an element sampled
    from an array (the digits would be read as an index).

    Args:
        sample: Decoded JSON value (typically a probe payload)
        prefix: Optional path prefix for every emitted field

    Returns:
        List of field paths, e.g. ``["price", "symbol", "meta.source"]``
    """
    fields: List[str] = []
    seen: set[str] = set()

    def traverse(current: Any, path: str, in_array: bool) -> None:
        kind = kind_of(current)
        if kind is JsonKind.ARRAY:
            if current:
                traverse(current[0], path, True)
        elif kind is JsonKind.OBJECT:
            for key, value in current.items():
                key = str(key)
                if not _addressable(key, path, in_array):
                    continue
                member_path = f"{path}{PATH_SEPARATOR}{key}" if path else key
                member_kind = kind_of(value)
                if member_kind in SCALAR_KINDS:
                    if member_path not in seen:
                        seen.add(member_path)
                        fields.append(member_path)
                elif member_kind is not JsonKind.NULL:
                    traverse(value, member_path, False)
        # NULL and bare scalars carry no addressable member

    traverse(sample, prefix, False)
    return fields


def _addressable(key: str, path: str, in_array: bool) -> bool:
    if PATH_SEPARATOR in key:
        return False
    if not key and not path:
        return False
    if in_array and is_index(key):
        return False
    return True
