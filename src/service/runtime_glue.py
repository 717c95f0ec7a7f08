"""Runtime orchestration layer for the dashboard core.

Bridges the widget store, the refresh scheduler and per-widget display state.

Key Features:
- Keeps one refresh job per live widget, following every store command
- Applies sequenced refresh results to a WidgetFeed, dropping stale ones
- Projects the latest payload of a widget into its display values
- Builds the whole stack from an AppConfig
"""

import threading
from typing import Any, Callable, Dict, Optional

from config.models import AppConfig
from config.schemas import PersistedState
from data_binding.probe import APIProbe
from data_binding.projection import project
from service.refresh_scheduler import RefreshResult, RefreshScheduler
from service.widget_feed import WidgetFeed, WidgetState
from storage.dashboard_store import DashboardStore
from storage.repository import create_repository
from storage.widgets import widget_id_of
from utils.logging import get_logger

logger = get_logger(__name__)

UpdateCallback = Callable[[str, WidgetState], None]


class DashboardRuntime:
    """Main runtime component that keeps widget data current."""

    def __init__(
        self,
        store: DashboardStore,
        scheduler: Optional[RefreshScheduler] = None,
        feed: Optional[WidgetFeed] = None,
        on_update: Optional[UpdateCallback] = None,
    ):
        self.store = store
        self.scheduler = scheduler or RefreshScheduler()
        self.feed = feed or WidgetFeed()
        self.on_update = on_update
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._sync_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig, on_update: Optional[UpdateCallback] = None) -> 'DashboardRuntime':
        store = DashboardStore(create_repository(config.storage), key=config.storage.key)
        scheduler = RefreshScheduler(probe=APIProbe(config.probe), config=config.scheduler)
        return cls(store, scheduler=scheduler, on_update=on_update)

    def start(self) -> None:
        """Schedule every active widget and follow store changes."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self._sync(self.store.snapshot())
        self.scheduler.start()
        logger.info(f"Dashboard runtime started with {len(self.feed.tracked_ids())} widgets")

    def stop(self, wait: bool = True) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.scheduler.shutdown(wait=wait)
        logger.info("Dashboard runtime stopped")

    def _on_store_change(self, state: PersistedState) -> None:
        self._sync(state)

    def _sync(self, state: PersistedState) -> None:
        widgets = state["widgets"]
        with self._sync_lock:
            live_ids = [widget_id for widget_id in map(widget_id_of, widgets) if widget_id]
            # cancel timers before forgetting state so no tick lands in between
            self.scheduler.sync(widgets, self._on_refresh)
            self.feed.retain(live_ids)

    def _on_refresh(self, refresh: RefreshResult) -> None:
        if not self.feed.apply(refresh):
            return
        if not refresh.result.success:
            logger.warning(f"Widget {refresh.widget_id} refresh failed: {refresh.result.error}")
        if self.on_update is not None:
            state = self.feed.get(refresh.widget_id)
            if state is not None:
                self.on_update(refresh.widget_id, state)

    def view(self, widget_id: str) -> Optional[Dict[str, Any]]:
        """Display values of a widget from its latest applied payload."""
        widget = self.store.get_widget(widget_id)
        state = self.feed.get(widget_id)
        if widget is None or state is None:
            return None
        return {
            "title": widget.get("title"),
            "type": widget.get("type"),
            "loading": state.loading,
            "error": state.error,
            "values": project(widget, state.data) if state.data is not None else None,
            "sequence": state.sequence,
        }
