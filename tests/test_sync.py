import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from dashboard_client import ApiError, ConnectionFailure, DashboardPoller, SyncState
from dashboard_client.sync import device_ids, format_age, live_status


def _rec(device_id, temperature=20.0):
    return {"_id": f"{device_id}-{temperature}", "deviceId": device_id,
            "temperature": temperature, "humidity": 50.0, "timestamp": "2024-01-01T00:00:00.000000Z"}


class FakeApi:
    def __init__(self):
        self.latest_rows = [_rec("device001"), _rec("device002")]
        self.device_rows = {"device001": [_rec("device001", 21.0)]}
        self.fail_with = None
        self.calls = []
        self.during_fetch = None

    def _answer(self, call, rows):
        self.calls.append(call)
        if self.during_fetch:
            self.during_fetch()
        if self.fail_with:
            raise self.fail_with
        return rows

    def latest(self):
        return self._answer(("latest",), self.latest_rows)

    def by_device(self, device_id):
        return self._answer(("device", device_id), self.device_rows.get(device_id, []))


def test_first_load_goes_idle_to_ready():
    api = FakeApi()
    poller = DashboardPoller(api)
    assert poller.state == SyncState.IDLE
    assert poller.data == []

    seen = []
    api.during_fetch = lambda: seen.append((poller.state, list(poller.data)))
    assert poller.refresh() == SyncState.READY
    assert seen == [(SyncState.LOADING, [])]
    assert poller.data == api.latest_rows
    assert poller.error is None
    assert poller.last_updated is not None


def test_previous_data_stays_visible_while_loading():
    api = FakeApi()
    poller = DashboardPoller(api)
    poller.refresh()
    first = poller.data

    seen = []
    api.during_fetch = lambda: seen.append((poller.loading, poller.data))
    api.latest_rows = [_rec("device003")]
    poller.refresh()
    assert seen == [(True, first)]
    assert poller.data == [_rec("device003")]


def test_failure_keeps_data_and_error_until_next_success():
    api = FakeApi()
    poller = DashboardPoller(api)
    poller.refresh()
    good = poller.data

    api.fail_with = ApiError("Server error", 500)
    assert poller.refresh() == SyncState.FAILED
    assert poller.error == "Server error"
    assert poller.data == good

    api.fail_with = ConnectionFailure()
    poller.refresh()
    assert poller.error == "Failed to connect to the server"

    api.fail_with = None
    assert poller.refresh() == SyncState.READY
    assert poller.error is None


def test_device_filter_persists_until_cleared():
    api = FakeApi()
    changes = []
    poller = DashboardPoller(api, on_change=lambda p: changes.append(p.state))

    poller.set_device("device001")
    poller.refresh()
    poller.refresh()
    assert api.calls == [("device", "device001")] * 3
    assert poller.data == api.device_rows["device001"]

    poller.clear_device()
    poller.refresh()
    assert api.calls[-2:] == [("latest",), ("latest",)]
    assert poller.device_id is None
    assert changes == [SyncState.READY] * 5


class GatedApi:
    """First call blocks until released; later calls answer at once."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self._lock = threading.Lock()
        self.n = 0

    def latest(self):
        with self._lock:
            self.n += 1
            n = self.n
        if n == 1:
            self.started.set()
            self.release.wait(5)
            return [_rec("slow-old")]
        return [_rec("fast-new")]


def _race(poller, api):
    t = threading.Thread(target=poller.refresh)
    t.start()
    assert api.started.wait(5)
    poller.refresh()
    api.release.set()
    t.join(5)


def test_last_response_wins_by_default():
    api = GatedApi()
    poller = DashboardPoller(api)
    _race(poller, api)
    assert poller.data == [_rec("slow-old")]
    assert poller.state == SyncState.READY


def test_ordered_mode_drops_stale_response():
    api = GatedApi()
    poller = DashboardPoller(api, ordered=True)
    _race(poller, api)
    assert poller.data == [_rec("fast-new")]
    assert poller.state == SyncState.READY


def test_timer_keeps_polling_through_failures():
    api = FakeApi()
    api.fail_with = ApiError("Server error", 500)
    poller = DashboardPoller(api, interval=0.01)
    poller.start()
    try:
        deadline = time.monotonic() + 5
        while len(api.calls) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        poller.stop(timeout=5)
    assert len(api.calls) >= 3
    assert poller.state == SyncState.FAILED
    assert poller.error == "Server error"

    count = len(api.calls)
    time.sleep(0.05)
    assert len(api.calls) == count


def test_device_ids_unique_in_first_seen_order():
    rows = [_rec("b"), _rec("a"), _rec("b", 30), _rec("c")]
    assert device_ids(rows) == ["b", "a", "c"]
    assert device_ids([]) == []


@pytest.mark.parametrize("age,expected", [(0, "live"), (9, "live"), (10, "recent"), (59, "recent"), (60, "stale")])
def test_live_status(age, expected):
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert live_status(now - timedelta(seconds=age), now=now) == expected


def test_live_status_accepts_api_timestamps():
    now = datetime(2024, 1, 1, 0, 0, 30, tzinfo=timezone.utc)
    assert live_status("2024-01-01T00:00:00.000000Z", now=now) == "recent"


@pytest.mark.parametrize("seconds,text", [(0, "0s ago"), (59, "59s ago"), (60, "1m ago"), (3599, "59m ago"), (7200, "2h ago")])
def test_format_age(seconds, text):
    assert format_age(seconds) == text


def test_unexpected_error_marks_fetch_failed():
    api = FakeApi()
    poller = DashboardPoller(api)
    poller.refresh()
    good = poller.data

    api.fail_with = AttributeError("'list' object has no attribute 'get'")
    assert poller.refresh() == SyncState.FAILED
    assert poller.error == "Unknown error occurred"
    assert poller.data == good
    assert not poller.loading


@pytest.mark.parametrize("age,expected", [(9.4, "live"), (9.6, "recent"), (59.4, "recent"), (59.6, "stale")])
def test_live_status_rounds_age(age, expected):
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert live_status(now - timedelta(seconds=age), now=now) == expected
