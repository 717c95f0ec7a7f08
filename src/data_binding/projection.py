"""Shape a probe payload into what each widget type displays.

Rendering collaborators draw the result; this module only decides which
values they receive.
"""

from typing import Any, Dict, List, Optional

from config.config import (
    CARD_DEFAULT_FIELD_COUNT,
    CHART_MAX_POINTS,
    MISSING_VALUE_PLACEHOLDER,
)
from config.schemas import Widget
from data_binding.path_resolver import resolve


def card_values(widget: Widget, data: Any) -> Dict[str, Any]:
    """Field -> value mapping for a card.

    Array payloads are sampled at their first element. Without a field
    selection the first few top-level keys are shown.
    """
    record = data
    if isinstance(data, list) and data:
        record = data[0]

    selected = widget.get("selectedFields") or []
    if selected:
        fields = list(selected)
    elif isinstance(record, dict):
        fields = list(record.keys())[:CARD_DEFAULT_FIELD_COUNT]
    else:
        fields = []

    values = {}
    for field_path in fields:
        value = resolve(record, field_path)
        values[field_path] = value if value is not None else MISSING_VALUE_PLACEHOLDER
    return values


def chart_points(widget: Widget, data: Any, limit: int = CHART_MAX_POINTS) -> List[Any]:
    """Rows for a chart; mapped to name/value pairs when both axes are set."""
    rows = data if isinstance(data, list) else [data]
    chart_config = widget.get("chartConfig") or {}
    x_field = chart_config.get("xAxisField")
    y_field = chart_config.get("yAxisField")

    if x_field and y_field:
        rows = [
            {
                "name": resolve(row, x_field),
                "value": resolve(row, y_field),
                "xLabel": x_field,
                "yLabel": y_field,
            }
            for row in rows
        ]
    return rows[:limit]


def table_rows(data: Any) -> List[Any]:
    """Rows for a table: the payload itself if it is an array, else the first
    array-valued member of an object payload, else the payload alone."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for value in data.values():
            if isinstance(value, list):
                return value
    return [data]


def table_columns(widget: Widget, rows: List[Any]) -> List[str]:
    selected = widget.get("selectedFields") or []
    if selected:
        return list(selected)
    if rows and isinstance(rows[0], dict):
        return list(rows[0].keys())
    return []


def table_cells(widget: Widget, data: Any) -> Dict[str, Any]:
    rows = table_rows(data)
    columns = table_columns(widget, rows)
    return {
        "columns": columns,
        "rows": [[resolve(row, column) for column in columns] for row in rows],
    }


def project(widget: Widget, data: Any) -> Optional[Any]:
    """Dispatch on widget type; None for unknown types (e.g. malformed imports)."""
    widget_type = widget.get("type")
    if widget_type == "card":
        return card_values(widget, data)
    if widget_type == "chart":
        return chart_points(widget, data)
    if widget_type == "table":
        return table_cells(widget, data)
    return None
