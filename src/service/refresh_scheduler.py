"""Per-widget polling refresh.

One interval job per live widget id keeps its bound data current. Every tick
carries a per-widget sequence number so consumers can tell a late response
from an older tick apart from the latest one.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.config import MIN_REFRESH_INTERVAL_SEC
from config.models import SchedulerConfig
from data_binding.probe import APIProbe, ProbeResult
from storage.widgets import refresh_signature, widget_id_of
from utils.datetime import utc_now
from utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RefreshResult:
    """One tick's outcome for one widget."""
    widget_id: str
    sequence: int
    result: ProbeResult
    started_at: datetime
    finished_at: datetime = field(default_factory=utc_now)


RefreshCallback = Callable[[RefreshResult], None]


@dataclass
class _Subscription:
    widget_id: str
    url: str
    interval_seconds: int
    callback: RefreshCallback
    api_key: Optional[str] = None
    signature: Dict[str, Any] = field(default_factory=dict)


def job_id_for(widget_id: str) -> str:
    return f"refresh_{widget_id}"


class RefreshScheduler:
    """Owns one cancellable interval job per subscribed widget id."""

    def __init__(
        self,
        probe: Optional[APIProbe] = None,
        config: Optional[SchedulerConfig] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """Initialize the refresh scheduler.

        Args:
            probe: Probe used for every tick
            config: Scheduling options
            scheduler: APScheduler instance; a BackgroundScheduler by default
        """
        self.probe = probe or APIProbe()
        self.config = config or SchedulerConfig()
        self.logger = get_logger(f"{__name__}.RefreshScheduler")
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self.scheduler.add_listener(self._job_listener, EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)

        self._lock = threading.Lock()
        self._subscriptions: Dict[str, _Subscription] = {}
        # Never reset, so sequences keep increasing across resubscribes
        self._sequences: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("Refresh scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._subscriptions.clear()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self.logger.info("Refresh scheduler stopped")

    # ------------------------------------------------------------------
    # Subscriptions

    def subscribe(
        self,
        widget_id: str,
        interval_seconds: int,
        callback: RefreshCallback,
        url: str,
        api_key: Optional[str] = None,
        signature: Optional[Dict[str, Any]] = None,
    ) -> None:
        """(Re)schedule polling for ``widget_id``.

        Any previous job for the id is replaced. The first probe fires
        immediately, then every ``interval_seconds``.
        """
        subscription = _Subscription(
            widget_id=widget_id,
            url=url,
            interval_seconds=int(interval_seconds),
            callback=callback,
            api_key=api_key,
            signature=signature or {},
        )
        with self._lock:
            self._subscriptions[widget_id] = subscription
            self.scheduler.add_job(
                func=self._tick,
                trigger=IntervalTrigger(seconds=subscription.interval_seconds),
                args=[subscription],
                id=job_id_for(widget_id),
                name=f"Refresh widget {widget_id}",
                next_run_time=datetime.now(timezone.utc),
                max_instances=self.config.max_instances,
                misfire_grace_time=self.config.misfire_grace_sec,
                coalesce=True,
                replace_existing=True,
            )
        self.logger.info(f"Scheduled refresh for {widget_id} every {subscription.interval_seconds}s")

    def unsubscribe(self, widget_id: str) -> bool:
        """Cancel polling for ``widget_id``; in-flight results are discarded.

        Returns:
            True if the widget was subscribed
        """
        with self._lock:
            subscription = self._subscriptions.pop(widget_id, None)
            try:
                self.scheduler.remove_job(job_id_for(widget_id))
            except JobLookupError:
                pass
        if subscription is not None:
            self.logger.info(f"Cancelled refresh for {widget_id}")
        return subscription is not None

    def refresh_now(self, widget_id: str) -> bool:
        """Run the next tick for ``widget_id`` immediately."""
        with self._lock:
            if widget_id not in self._subscriptions:
                return False
            self.scheduler.modify_job(job_id_for(widget_id), next_run_time=datetime.now(timezone.utc))
        return True

    def sync(self, widgets: Iterable[Any], callback: RefreshCallback) -> None:
        """Reconcile jobs with ``widgets``.

        New widgets are subscribed, widgets whose url, key, interval, fields
        or chart mapping changed are resubscribed, and subscriptions for ids
        no longer present are cancelled.
        """
        wanted: Dict[str, Any] = {}
        for widget in widgets:
            widget_id = widget_id_of(widget)
            if widget_id is None:
                self.logger.warning("Skipping widget record without an id")
                continue
            wanted[widget_id] = widget

        for widget_id in self.active_widget_ids():
            if widget_id not in wanted:
                self.unsubscribe(widget_id)

        for widget_id, widget in wanted.items():
            signature = refresh_signature(widget)
            with self._lock:
                current = self._subscriptions.get(widget_id)
            if current is not None and current.signature == signature:
                continue

            url = widget.get("apiUrl")
            interval = _usable_interval(widget.get("refreshInterval"))
            if not url or interval is None:
                self.logger.warning(f"Widget {widget_id} has no usable URL or interval, not polling it")
                if current is not None:
                    self.unsubscribe(widget_id)
                continue

            self.subscribe(
                widget_id,
                interval,
                callback,
                url=url,
                api_key=widget.get("apiKey"),
                signature=signature,
            )

    def active_widget_ids(self) -> List[str]:
        with self._lock:
            return list(self._subscriptions)

    def is_subscribed(self, widget_id: str) -> bool:
        with self._lock:
            return widget_id in self._subscriptions

    # ------------------------------------------------------------------
    # Ticks

    def _next_sequence(self, widget_id: str) -> int:
        with self._lock:
            sequence = self._sequences.get(widget_id, 0) + 1
            self._sequences[widget_id] = sequence
            return sequence

    def _is_current(self, subscription: _Subscription) -> bool:
        with self._lock:
            return self._subscriptions.get(subscription.widget_id) is subscription

    def _tick(self, subscription: _Subscription) -> None:
        """Probe once and deliver the sequenced result, unless the widget was
        removed or reconfigured while the request was in flight."""
        if not self._is_current(subscription):
            return
        sequence = self._next_sequence(subscription.widget_id)
        started_at = utc_now()

        result = self.probe.test(subscription.url, subscription.api_key)

        if not self._is_current(subscription):
            self.logger.debug(
                f"Dropping tick {sequence} for {subscription.widget_id}: no longer subscribed"
            )
            return

        try:
            subscription.callback(RefreshResult(
                widget_id=subscription.widget_id,
                sequence=sequence,
                result=result,
                started_at=started_at,
            ))
        except Exception as e:
            self.logger.error(f"Refresh callback failed for {subscription.widget_id}: {e}")

    # ------------------------------------------------------------------
    # Status

    def get_status(self) -> Dict[str, Any]:
        """Scheduler and per-widget job status."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            sequences = dict(self._sequences)

        jobs = []
        for subscription in subscriptions:
            job = self.scheduler.get_job(job_id_for(subscription.widget_id))
            next_run = getattr(job, "next_run_time", None) if job else None
            jobs.append({
                "widget_id": subscription.widget_id,
                "interval_seconds": subscription.interval_seconds,
                "last_sequence": sequences.get(subscription.widget_id, 0),
                "next_run": next_run.isoformat() if next_run else None,
            })

        return {
            "scheduler_running": self.scheduler.running,
            "jobs": jobs,
        }

    def _job_listener(self, event):
        """Listen to job errors and skipped overlapping runs."""
        if getattr(event, "exception", None):
            self.logger.error(f"Job {event.job_id} failed: {event.exception}")
        else:
            self.logger.warning(f"Job {event.job_id} skipped: too many ticks in flight")


def _usable_interval(value: Any) -> Optional[int]:
    """Refresh interval to schedule with, clamped to the minimum; None if unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < MIN_REFRESH_INTERVAL_SEC:
        logger.warning(f"Refresh interval {value}s below minimum, using {MIN_REFRESH_INTERVAL_SEC}s")
        return MIN_REFRESH_INTERVAL_SEC
    return int(value)
