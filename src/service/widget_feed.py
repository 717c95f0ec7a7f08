"""Per-widget display state fed by refresh results.

WidgetFeed is the consumer side of RefreshScheduler: it applies a result only
when it belongs to a widget that still exists and comes from a newer tick than
the one currently shown.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from service.refresh_scheduler import RefreshResult
from utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class WidgetState:
    widget_id: str
    loading: bool = True
    data: Any = None
    fields: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    sequence: int = 0
    updated_at: Optional[datetime] = None


class WidgetFeed:
    """Latest applied state per live widget id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._states: Dict[str, WidgetState] = {}
        self.dropped = 0

    def track(self, widget_id: str) -> None:
        with self._lock:
            self._states.setdefault(widget_id, WidgetState(widget_id=widget_id))

    def forget(self, widget_id: str) -> None:
        with self._lock:
            self._states.pop(widget_id, None)

    def retain(self, widget_ids: Iterable[str]) -> None:
        """Track exactly ``widget_ids``: new ids start loading, others are forgotten."""
        wanted = set(widget_ids)
        with self._lock:
            for widget_id in list(self._states):
                if widget_id not in wanted:
                    del self._states[widget_id]
            for widget_id in wanted:
                self._states.setdefault(widget_id, WidgetState(widget_id=widget_id))

    def tracked_ids(self) -> List[str]:
        with self._lock:
            return list(self._states)

    def get(self, widget_id: str) -> Optional[WidgetState]:
        with self._lock:
            return self._states.get(widget_id)

    def apply(self, refresh: RefreshResult) -> bool:
        """Apply ``refresh`` if its widget is tracked and its tick is newer.

        Returns:
            True if the widget's state changed
        """
        with self._lock:
            current = self._states.get(refresh.widget_id)
            if current is None:
                self.dropped += 1
                logger.debug(f"Dropping result for removed widget {refresh.widget_id}")
                return False
            if refresh.sequence <= current.sequence:
                self.dropped += 1
                logger.debug(
                    f"Dropping stale tick {refresh.sequence} for {refresh.widget_id} "
                    f"(showing {current.sequence})"
                )
                return False

            result = refresh.result
            if result.success:
                state = replace(
                    current,
                    loading=False,
                    data=result.data,
                    fields=list(result.fields),
                    error=None,
                    error_type=None,
                    sequence=refresh.sequence,
                    updated_at=refresh.finished_at,
                )
            else:
                # keep the last good data; the error is shown inline for this widget only
                state = replace(
                    current,
                    loading=False,
                    error=result.error or "Failed to fetch data",
                    error_type=result.error_type,
                    sequence=refresh.sequence,
                    updated_at=refresh.finished_at,
                )
            self._states[refresh.widget_id] = state
            return True
