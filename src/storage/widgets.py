"""Widget construction at the input boundary, plus list helpers."""

import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

from config.config import (
    WIDGET_TYPES,
    CHART_TYPES,
    DEFAULT_CHART_TYPE,
    DEFAULT_CHART_COLOR,
    MIN_REFRESH_INTERVAL_SEC,
    DEFAULT_REFRESH_INTERVAL_SEC,
)
from config.schemas import ChartConfig, Widget
from data_binding.errors import ValidationError

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")

# Configuration that changes what a widget fetches or shows
REFRESH_KEYS = ("apiUrl", "apiKey", "refreshInterval", "selectedFields", "chartConfig")


def new_widget_id() -> str:
    return f"widget-{uuid.uuid4().hex[:12]}"


def build_chart_config(
    x_axis_field: str,
    y_axis_field: str,
    chart_type: str = DEFAULT_CHART_TYPE,
    color: str = DEFAULT_CHART_COLOR,
) -> ChartConfig:
    if chart_type not in CHART_TYPES:
        raise ValidationError(f"Unknown chart type: {chart_type!r}")
    if not HEX_COLOR_RE.match(color or ""):
        raise ValidationError(f"Chart color must be a hex string, got {color!r}")
    return ChartConfig(
        chartType=chart_type,
        xAxisField=x_axis_field,
        yAxisField=y_axis_field,
        color=color,
    )


def build_widget(
    widget_type: str,
    title: str,
    api_url: str,
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL_SEC,
    selected_fields: Optional[Iterable[str]] = None,
    api_key: Optional[str] = None,
    chart_config: Optional[ChartConfig] = None,
    widget_id: Optional[str] = None,
) -> Widget:
    """Validate configuration panel input and return a new Widget record.

    Raises:
        ValidationError: missing title/URL, unknown type, interval below the
            minimum, or a chart config on a non-chart widget
    """
    if widget_type not in WIDGET_TYPES:
        raise ValidationError(f"Unknown widget type: {widget_type!r}")
    if not title or not api_url:
        raise ValidationError("Widget type, title and API URL are required")
    validate_refresh_interval(refresh_interval)
    if chart_config is not None and widget_type != "chart":
        raise ValidationError("Chart configuration is only valid for chart widgets")

    widget = Widget(
        id=widget_id or new_widget_id(),
        type=widget_type,
        title=title,
        apiUrl=api_url,
        refreshInterval=int(refresh_interval),
        selectedFields=list(selected_fields or []),
        position=0,
    )
    if api_key:
        widget["apiKey"] = api_key
    if chart_config is not None:
        widget["chartConfig"] = chart_config
    return widget


def validate_refresh_interval(refresh_interval: Any) -> int:
    if isinstance(refresh_interval, bool) or not isinstance(refresh_interval, (int, float)):
        raise ValidationError(f"Refresh interval must be a number, got {refresh_interval!r}")
    if refresh_interval < MIN_REFRESH_INTERVAL_SEC:
        raise ValidationError(
            f"Refresh interval must be at least {MIN_REFRESH_INTERVAL_SEC}s, got {refresh_interval}"
        )
    return int(refresh_interval)


def widget_id_of(widget: Any) -> Optional[str]:
    """Id of a widget record, tolerating malformed imported entries."""
    if isinstance(widget, dict):
        widget_id = widget.get("id")
        return widget_id if isinstance(widget_id, str) else None
    return None


def find_index(widgets: List[Any], widget_id: str) -> int:
    for index, widget in enumerate(widgets):
        if widget_id_of(widget) == widget_id:
            return index
    return -1


def move_before(widgets: List[Any], dragged_id: str, target_id: str) -> Optional[List[Any]]:
    """Ordering after dropping ``dragged_id`` onto ``target_id``.

    Returns None when the drop changes nothing (same id, unknown id).
    """
    if dragged_id == target_id:
        return None
    dragged_index = find_index(widgets, dragged_id)
    target_index = find_index(widgets, target_id)
    if dragged_index < 0 or target_index < 0:
        return None

    reordered = list(widgets)
    dragged = reordered.pop(dragged_index)
    reordered.insert(target_index, dragged)
    return reordered


def refresh_signature(widget: Any) -> Dict[str, Any]:
    """The part of a widget whose change requires rescheduling its refresh."""
    if not isinstance(widget, dict):
        return {}
    return {key: widget.get(key) for key in REFRESH_KEYS}
