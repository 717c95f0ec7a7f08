"""Multi-dashboard widget store.

DashboardStore is the single owner of dashboard state. Every command runs
under one lock, produces the new state, writes the whole record to the
repository and notifies subscribers.

The active widget list mirrors the current dashboard's widgets. Both are
only ever written together, by ``_write_widgets``.
"""

import copy
import sqlite3
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional

from config.config import (
    STORAGE_KEY,
    DEFAULT_DASHBOARD_ID,
    DEFAULT_DASHBOARD_NAME,
    DEFAULT_THEME,
    THEMES,
)
from config.schemas import Dashboard, PersistedState, Widget
from data_binding.errors import ParseError, ValidationError
from storage.import_export import export_widgets, parse_widgets
from storage.repository import MemoryRepository, StateRepository
from storage.widgets import find_index, move_before, new_widget_id, widget_id_of
from utils.datetime import now_ms
from utils.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[[PersistedState], None]

# Fields a partial update may not change
IMMUTABLE_WIDGET_KEYS = ("id", "type")


def default_dashboard(ts_ms: int) -> Dashboard:
    return Dashboard(
        id=DEFAULT_DASHBOARD_ID,
        name=DEFAULT_DASHBOARD_NAME,
        widgets=[],
        theme=DEFAULT_THEME,
        createdAt=ts_ms,
        updatedAt=ts_ms,
    )


def initial_state(ts_ms: int) -> PersistedState:
    """Cold-start state: one default dashboard, no widgets."""
    return PersistedState(
        dashboards=[default_dashboard(ts_ms)],
        currentDashboardId=DEFAULT_DASHBOARD_ID,
        widgets=[],
    )


def _looks_like_state(state: Any) -> bool:
    return (
        isinstance(state, dict)
        and isinstance(state.get("dashboards"), list)
        and isinstance(state.get("currentDashboardId"), str)
        and isinstance(state.get("widgets"), list)
    )


def _looks_like_dashboard(dashboard: Any) -> bool:
    return (
        isinstance(dashboard, dict)
        and isinstance(dashboard.get("id"), str)
        and isinstance(dashboard.get("widgets"), list)
    )


class DashboardStore:
    """Owns dashboards and widgets; persists the whole state after each command."""

    def __init__(
        self,
        repository: Optional[StateRepository] = None,
        key: str = STORAGE_KEY,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the store and rehydrate persisted state.

        Args:
            repository: Durable storage; in-memory when omitted
            key: Fixed key the state record is stored under
            clock: Source of epoch-millisecond timestamps
        """
        self.repository = repository or MemoryRepository()
        self.key = key
        self.clock = clock
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._state: PersistedState = self._rehydrate()

    # ------------------------------------------------------------------
    # Persistence

    def _rehydrate(self) -> PersistedState:
        try:
            stored = self.repository.load(self.key)
        except (OSError, ValueError, sqlite3.Error) as e:
            logger.warning(f"Could not read stored dashboard state, starting fresh: {e}")
            stored = None

        if stored is None:
            logger.info("No stored dashboard state, starting with the default dashboard")
            return initial_state(self.clock())
        if not _looks_like_state(stored):
            logger.warning("Stored dashboard state has an unexpected shape, starting fresh")
            return initial_state(self.clock())

        dashboards, seen = [], set()
        for d in stored["dashboards"]:
            if _looks_like_dashboard(d) and d["id"] not in seen:
                seen.add(d["id"])
                dashboards.append(d)
        if len(dashboards) != len(stored["dashboards"]):
            logger.warning(
                f"Dropping {len(stored['dashboards']) - len(dashboards)} malformed or duplicate stored dashboards"
            )
        stored["dashboards"] = dashboards

        if not any(d["id"] == DEFAULT_DASHBOARD_ID for d in dashboards):
            logger.warning("Stored state has no default dashboard, restoring it")
            dashboards.insert(0, default_dashboard(self.clock()))

        if not any(d["id"] == stored["currentDashboardId"] for d in dashboards):
            logger.warning(
                f"Stored current dashboard {stored['currentDashboardId']!r} does not exist, "
                f"switching to {DEFAULT_DASHBOARD_ID!r}"
            )
            stored["currentDashboardId"] = DEFAULT_DASHBOARD_ID

        current = next(d for d in dashboards if d["id"] == stored["currentDashboardId"])
        if stored["widgets"] != current["widgets"]:
            logger.warning("Stored active widgets differ from the current dashboard, re-syncing")
            stored["widgets"] = copy.deepcopy(current["widgets"])

        logger.info(
            f"Rehydrated {len(stored['dashboards'])} dashboards, "
            f"current={stored['currentDashboardId']}"
        )
        return stored

    def _persist(self) -> None:
        try:
            self.repository.save(self.key, self._state)
        except (OSError, TypeError, ValueError, sqlite3.Error) as e:
            logger.error(f"Failed to persist dashboard state: {e}")

    def _commit(self, state: PersistedState) -> None:
        """Install ``state``, persist it and notify subscribers. Lock must be held."""
        self._state = state
        self._persist()
        snapshot = copy.deepcopy(state)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Dashboard store listener failed: {e}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every command.

        Returns:
            Function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Queries

    def snapshot(self) -> PersistedState:
        """Deep copy of the full state record."""
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def dashboards(self) -> List[Dashboard]:
        with self._lock:
            return copy.deepcopy(self._state["dashboards"])

    @property
    def current_dashboard_id(self) -> str:
        with self._lock:
            return self._state["currentDashboardId"]

    @property
    def widgets(self) -> List[Widget]:
        """Active widget list, in display order."""
        with self._lock:
            return copy.deepcopy(self._state["widgets"])

    def get_current_dashboard(self) -> Optional[Dashboard]:
        with self._lock:
            dashboard = self._find_dashboard(self._state["currentDashboardId"])
            return copy.deepcopy(dashboard) if dashboard is not None else None

    def get_widget(self, widget_id: str) -> Optional[Widget]:
        with self._lock:
            index = find_index(self._state["widgets"], widget_id)
            if index < 0:
                return None
            return copy.deepcopy(self._state["widgets"][index])

    def _find_dashboard(self, dashboard_id: str) -> Optional[Dashboard]:
        for dashboard in self._state["dashboards"]:
            if dashboard.get("id") == dashboard_id:
                return dashboard
        return None

    # ------------------------------------------------------------------
    # Dashboard commands

    def create_dashboard(self, name: str, theme: str = DEFAULT_THEME) -> Dashboard:
        """Append a new empty dashboard and make it current."""
        if not name or not name.strip():
            raise ValidationError("Dashboard name is required")
        _check_theme(theme)

        with self._lock:
            ts = self.clock()
            dashboard = Dashboard(
                id=f"dashboard-{uuid.uuid4().hex[:12]}",
                name=name.strip(),
                widgets=[],
                theme=theme,
                createdAt=ts,
                updatedAt=ts,
            )
            self._commit(PersistedState(
                dashboards=[*self._state["dashboards"], dashboard],
                currentDashboardId=dashboard["id"],
                widgets=[],
            ))
            logger.info(f"Created dashboard {dashboard['id']} ({dashboard['name']!r})")
            return copy.deepcopy(dashboard)

    def delete_dashboard(self, dashboard_id: str) -> bool:
        """Remove a dashboard; the default dashboard is never removed.

        Returns:
            True if a dashboard was removed
        """
        with self._lock:
            if dashboard_id == DEFAULT_DASHBOARD_ID or self._find_dashboard(dashboard_id) is None:
                return False

            dashboards = [d for d in self._state["dashboards"] if d.get("id") != dashboard_id]
            if self._state["currentDashboardId"] == dashboard_id:
                fallback = next(d for d in dashboards if d.get("id") == DEFAULT_DASHBOARD_ID)
                current_id = DEFAULT_DASHBOARD_ID
                widgets = copy.deepcopy(fallback["widgets"])
            else:
                current_id = self._state["currentDashboardId"]
                widgets = self._state["widgets"]

            self._commit(PersistedState(
                dashboards=dashboards,
                currentDashboardId=current_id,
                widgets=widgets,
            ))
            logger.info(f"Deleted dashboard {dashboard_id}")
            return True

    def switch_dashboard(self, dashboard_id: str) -> bool:
        """Make ``dashboard_id`` current; its widgets are copied into the active list."""
        with self._lock:
            dashboard = self._find_dashboard(dashboard_id)
            if dashboard is None:
                return False
            self._commit(PersistedState(
                dashboards=self._state["dashboards"],
                currentDashboardId=dashboard_id,
                widgets=copy.deepcopy(dashboard["widgets"]),
            ))
            return True

    def update_dashboard_theme(self, dashboard_id: str, theme: str) -> bool:
        _check_theme(theme)
        with self._lock:
            if self._find_dashboard(dashboard_id) is None:
                return False
            ts = self.clock()
            dashboards = [
                {**d, "theme": theme, "updatedAt": ts} if d.get("id") == dashboard_id else d
                for d in self._state["dashboards"]
            ]
            self._commit(PersistedState(
                dashboards=dashboards,
                currentDashboardId=self._state["currentDashboardId"],
                widgets=self._state["widgets"],
            ))
            return True

    # ------------------------------------------------------------------
    # Widget commands

    def _write_widgets(self, widgets: List[Any]) -> None:
        """Replace the active widget list and the current dashboard's list together."""
        ts = self.clock()
        current_id = self._state["currentDashboardId"]
        dashboards = [
            {**d, "widgets": copy.deepcopy(widgets), "updatedAt": ts} if d.get("id") == current_id else d
            for d in self._state["dashboards"]
        ]
        self._commit(PersistedState(
            dashboards=dashboards,
            currentDashboardId=current_id,
            widgets=widgets,
        ))

    def add_widget(self, widget: Widget) -> Widget:
        """Append ``widget`` to the active dashboard.

        The stored record gets ``position`` = current length, and an id if it
        has none.
        """
        with self._lock:
            record = copy.deepcopy(widget)
            if not record.get("id"):
                record["id"] = new_widget_id()
            record["position"] = len(self._state["widgets"])
            self._write_widgets([*self._state["widgets"], record])
            logger.info(f"Added {record.get('type')} widget {record['id']}")
            return copy.deepcopy(record)

    def remove_widget(self, widget_id: str) -> bool:
        with self._lock:
            widgets = [w for w in self._state["widgets"] if widget_id_of(w) != widget_id]
            if len(widgets) == len(self._state["widgets"]):
                return False
            self._write_widgets(widgets)
            logger.info(f"Removed widget {widget_id}")
            return True

    def update_widget(self, widget_id: str, updates: Dict[str, Any]) -> Optional[Widget]:
        """Merge ``updates`` into a widget; ``id`` and ``type`` are left untouched.

        Returns:
            The updated widget, or None if no widget has ``widget_id``
        """
        with self._lock:
            index = find_index(self._state["widgets"], widget_id)
            if index < 0:
                return None

            changes = dict(updates)
            for key in IMMUTABLE_WIDGET_KEYS:
                if key in changes:
                    if changes[key] != self._state["widgets"][index].get(key):
                        logger.warning(f"Ignoring change of widget {key} for {widget_id}")
                    del changes[key]

            widgets = list(self._state["widgets"])
            widgets[index] = {**widgets[index], **copy.deepcopy(changes)}
            self._write_widgets(widgets)
            return copy.deepcopy(widgets[index])

    def reorder_widgets(self, new_order: List[Widget]) -> None:
        """Replace the active list with ``new_order``.

        ``new_order`` must be a permutation of the current widgets; this is
        not checked. Positions are re-stamped from list order.
        """
        with self._lock:
            widgets = []
            for index, widget in enumerate(copy.deepcopy(new_order)):
                if isinstance(widget, dict):
                    widget["position"] = index
                widgets.append(widget)
            self._write_widgets(widgets)

    def move_widget(self, dragged_id: str, target_id: str) -> bool:
        """Drop ``dragged_id`` at ``target_id``'s place."""
        with self._lock:
            reordered = move_before(self._state["widgets"], dragged_id, target_id)
            if reordered is None:
                return False
            self.reorder_widgets(reordered)
            return True

    def clear_widgets(self) -> None:
        """Delete every widget of the active dashboard."""
        with self._lock:
            self._write_widgets([])

    # ------------------------------------------------------------------
    # Import / export

    def export_dashboard(self) -> str:
        """Active widget list as pretty-printed JSON."""
        with self._lock:
            return export_widgets(self._state["widgets"])

    def import_dashboard(self, text: str) -> bool:
        """Replace the active widgets with the array in ``text``.

        Returns:
            True on success; False, with state unchanged, when ``text`` is not
            JSON or its top level is not an array
        """
        try:
            widgets = parse_widgets(text)
        except (ParseError, ValidationError) as e:
            logger.error(f"Failed to import dashboard: {e}")
            return False

        with self._lock:
            self._write_widgets(widgets)
        logger.info(f"Imported {len(widgets)} widgets")
        return True


def _check_theme(theme: str) -> None:
    if theme not in THEMES:
        raise ValidationError(f"Unknown theme: {theme!r}")
