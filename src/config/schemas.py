"""Schema definitions for the records persisted and exported by the dashboard core.

Key names are camelCase because they are the on-disk and export file format.
"""

from typing import TypedDict, List, Literal


WidgetType = Literal["chart", "card", "table"]
ChartType = Literal["line", "bar"]
Theme = Literal["light", "dark"]


class ChartConfig(TypedDict):
    chartType: ChartType
    xAxisField: str
    yAxisField: str
    color: str  # hex, e.g. "#3b82f6"


class _WidgetBase(TypedDict):
    id: str
    type: WidgetType
    title: str
    apiUrl: str
    refreshInterval: int  # seconds
    selectedFields: List[str]  # empty = default subset
    position: int


class Widget(_WidgetBase, total=False):
    apiKey: str  # plaintext, sensitive
    chartConfig: ChartConfig


class Dashboard(TypedDict):
    id: str
    name: str
    theme: Theme
    widgets: List[Widget]
    createdAt: int  # epoch ms
    updatedAt: int  # epoch ms


class PersistedState(TypedDict):
    dashboards: List[Dashboard]
    currentDashboardId: str
    widgets: List[Widget]
