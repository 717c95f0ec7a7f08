"""Classification of decoded JSON values.

Traversal code dispatches on :class:`JsonKind` instead of ad hoc type checks,
so every kind a decoded document can contain is handled explicitly.
"""

from enum import Enum
from typing import Any


class JsonKind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


SCALAR_KINDS = frozenset({JsonKind.BOOL, JsonKind.NUMBER, JsonKind.STRING})


def kind_of(value: Any) -> JsonKind:
    """Return the JSON kind of a value produced by ``json.loads``.

    Raises:
        TypeError: ``value`` is not something JSON can represent.
    """
    if value is None:
        return JsonKind.NULL
    # bool before number: bool is a subclass of int
    if isinstance(value, bool):
        return JsonKind.BOOL
    if isinstance(value, (int, float)):
        return JsonKind.NUMBER
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, (list, tuple)):
        return JsonKind.ARRAY
    if isinstance(value, dict):
        return JsonKind.OBJECT
    raise TypeError(f"Not a JSON value: {type(value).__name__}")
