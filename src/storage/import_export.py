"""Serialize the active widget list to JSON text and back.

Exports are a plain, unversioned JSON array of widget records. Imports only
check that the top level is an array; individual records pass through as-is.
"""

import json
from pathlib import Path
from typing import Any, List, Optional

from config.config import EXPORT_FILE_PREFIX, EXPORT_INDENT, IMPORT_MAX_DEPTH
from data_binding.errors import ParseError, ValidationError
from utils.datetime import now_ms
from utils.io import write_text_atomic


def export_widgets(widgets: List[Any]) -> str:
    """Pretty-printed JSON array of widget records."""
    return json.dumps(widgets, indent=EXPORT_INDENT)


def parse_widgets(text: str) -> List[Any]:
    """Parse import text into a widget list.

    Raises:
        ParseError: ``text`` is not valid JSON
        ValidationError: the top level is not an array, or it nests deeper
            than IMPORT_MAX_DEPTH
    """
    try:
        widgets = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Import is not valid JSON: {e}") from e
    except RecursionError as e:
        raise ParseError("Import is nested too deeply to decode") from e

    if not isinstance(widgets, list):
        raise ValidationError("Invalid format: expected array of widgets")
    if _nesting_depth(widgets) > IMPORT_MAX_DEPTH:
        raise ValidationError(f"Invalid format: widgets nest deeper than {IMPORT_MAX_DEPTH} levels")
    return widgets


def export_filename(ts_ms: Optional[int] = None) -> str:
    """Download name with an embedded timestamp, e.g. finboard-dashboard-1700000000000.json."""
    return f"{EXPORT_FILE_PREFIX}-{ts_ms if ts_ms is not None else now_ms()}.json"


def write_export(text: str, directory: str | Path) -> Path:
    """Write exported text into ``directory`` under a timestamped name."""
    return write_text_atomic(Path(directory) / export_filename(), text)


def read_import(path: str | Path) -> str:
    """Read import text from ``path``.

    Raises:
        OSError: the file cannot be read
        ParseError: the file is not UTF-8 text
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise ParseError(f"Import file is not UTF-8 text: {e}") from e


def _nesting_depth(value: Any) -> int:
    """Container nesting depth, computed without recursion."""
    deepest = 0
    stack = [(value, 1)]
    while stack:
        current, depth = stack.pop()
        if isinstance(current, dict):
            children = current.values()
        elif isinstance(current, list):
            children = current
        else:
            continue
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in children)
    return deepest
