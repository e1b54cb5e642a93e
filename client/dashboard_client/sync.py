"""Polling sync layer for dashboard clients.

A ``DashboardPoller`` keeps the latest readings in memory and re-fetches them
on a fixed interval, on ``refresh()`` and when the device filter changes.

State flow::

    IDLE -> LOADING -> READY | FAILED
                ^          |
                +----------+  (tick, refresh, filter change)

While LOADING the previous data stays available. A FAILED fetch keeps the old
data and exposes the error message; the next tick retries with no backoff.
Overlapping fetches are not cancelled: whichever finishes last wins, unless
the poller was built with ``ordered=True``, in which case a response older
than the last applied one is dropped.
"""
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List

from .api import ApiError

LOG = logging.getLogger("dashboard_client.sync")

POLL_INTERVAL = 5.0  # seconds
UNKNOWN_ERROR = "Unknown error occurred"


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class DashboardPoller:
    def __init__(self, api, interval: float = POLL_INTERVAL, ordered: bool = False,
                 on_change: Callable[["DashboardPoller"], None] | None = None):
        self.api = api
        self.interval = interval
        self.ordered = ordered
        self.on_change = on_change

        self.state = SyncState.IDLE
        self.data: List[Dict[str, Any]] = []
        self.error: str | None = None
        self.device_id: str | None = None
        self.last_updated: datetime | None = None

        self._lock = threading.Lock()
        self._seq = 0
        self._applied = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def loading(self) -> bool:
        return self.state == SyncState.LOADING

    # --- triggers ---

    def refresh(self) -> SyncState:
        return self._fetch(self.device_id)

    def set_device(self, device_id: str | None) -> SyncState:
        """Switch the polling target; ``None`` goes back to all devices."""
        with self._lock:
            self.device_id = device_id or None
        return self._fetch(self.device_id)

    def clear_device(self) -> SyncState:
        return self.set_device(None)

    # --- timer ---

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="dashboard-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def _run(self):
        self._tick()
        while not self._stop.wait(self.interval):
            self._tick()

    def _tick(self):
        try:
            self.refresh()
        except Exception:
            LOG.exception("poll tick failed")

    # --- fetch/apply ---

    def _fetch(self, device_id: str | None) -> SyncState:
        with self._lock:
            self._seq += 1
            seq = self._seq
            self.state = SyncState.LOADING
        try:
            data = self.api.by_device(device_id) if device_id else self.api.latest()
        except ApiError as e:
            LOG.warning("fetch failed: %s", e.message)
            self._apply(seq, error=e.message)
        except Exception:
            LOG.exception("fetch failed unexpectedly")
            self._apply(seq, error=UNKNOWN_ERROR)
        else:
            self._apply(seq, data=data or [])
        return self.state

    def _apply(self, seq: int, data: List[Dict[str, Any]] | None = None, error: str | None = None):
        with self._lock:
            if self.ordered and seq < self._applied:
                LOG.debug("dropping response %d, already applied %d", seq, self._applied)
                return
            self._applied = max(self._applied, seq)
            if error is None:
                self.data = data
                self.error = None
                self.state = SyncState.READY
                self.last_updated = datetime.now(timezone.utc)
            else:
                self.error = error
                self.state = SyncState.FAILED
        if self.on_change:
            self.on_change(self)


def device_ids(records: Iterable[Dict[str, Any]]) -> List[str]:
    """Unique device ids in the order they first appear."""
    seen: Dict[str, None] = {}
    for r in records:
        seen.setdefault(r["deviceId"], None)
    return list(seen)


def _parse_ts(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def live_status(last_updated: datetime | str, now: datetime | None = None) -> str:
    age = round(((now or datetime.now(timezone.utc)) - _parse_ts(last_updated)).total_seconds())
    if age < 10:
        return "live"
    if age < 60:
        return "recent"
    return "stale"


def format_age(seconds: float) -> str:
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"
