"""Project-wide single-source configuration constants for the dashboard core."""

from pathlib import Path
from utils.path_utils import find_repo_root

# ----- Base directory configuration -------
PROJECT_ROOT = find_repo_root()
DATA_DIR: Path = PROJECT_ROOT / "datasets"

# ------ Persistence -------
STORAGE_KEY: str = "finboard-dashboard"      # Fixed key of the persisted record
STATE_DIR: Path = DATA_DIR / "state"         # JSON file backend directory
STATE_DB_PATH: Path = DATA_DIR / "state.db"  # SQLite backend path
STORAGE_BACKEND: str = "json"                # "json" | "sqlite" | "memory"

# ------ Dashboards -------
DEFAULT_DASHBOARD_ID: str = "default"
DEFAULT_DASHBOARD_NAME: str = "Default Dashboard"
DEFAULT_THEME: str = "dark"
THEMES: tuple[str, ...] = ("light", "dark")

# ------ Widgets -------
WIDGET_TYPES: tuple[str, ...] = ("chart", "card", "table")
CHART_TYPES: tuple[str, ...] = ("line", "bar")
DEFAULT_CHART_TYPE: str = "line"
DEFAULT_CHART_COLOR: str = "#3b82f6"
MIN_REFRESH_INTERVAL_SEC: int = 5      # Lower bound enforced on input
DEFAULT_REFRESH_INTERVAL_SEC: int = 30

# ------ Probe -------
PROBE_TIMEOUT_SEC = None               # None = wait for the upstream indefinitely
API_KEY_PLACEMENT: str = "none"        # "none" | "header" | "query"
API_KEY_HEADER: str = "X-API-Key"
API_KEY_PARAM: str = "apikey"

# ------ Refresh scheduling -------
REFRESH_MAX_INSTANCES: int = 3         # Overlapping ticks allowed per widget
REFRESH_MISFIRE_GRACE_SEC: int = 5

# ------ Projection -------
CARD_DEFAULT_FIELD_COUNT: int = 6      # Card shows first N keys without a selection
CHART_MAX_POINTS: int = 10             # Chart shows first N rows
MISSING_VALUE_PLACEHOLDER: str = "-"

# ------ Export -------
EXPORT_FILE_PREFIX: str = "finboard-dashboard"
EXPORT_INDENT: int = 2
IMPORT_MAX_DEPTH: int = 64              # Deeper imports are rejected before storing
