from typing import Callable, List, Optional

import pytest

from cardbeacon.errors import FacilityError
from cardbeacon.facility import ScanFacility


class FakeTimer:
    def __init__(self, interval: float, fn: Callable[[], None]):
        self.interval = interval
        self.fn = fn
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return self.started and not self.cancelled and not self.fired

    def fire(self) -> None:
        """Run the callback even if cancelled (a callback already in flight)."""
        self.fired = True
        self.fn()


class ManualTimers:
    """timer_factory stand-in: timers only run when a test fires them."""
    def __init__(self):
        self.created: List[FakeTimer] = []

    def __call__(self, interval: float, fn: Callable[[], None]) -> FakeTimer:
        t = FakeTimer(interval, fn)
        self.created.append(t)
        return t

    def pending(self, interval: Optional[float] = None) -> List[FakeTimer]:
        return [
            t for t in self.created
            if t.pending and (interval is None or t.interval == interval)
        ]

    def fire(self, interval: float) -> int:
        due = self.pending(interval)
        for t in due:
            t.fire()
        return len(due)


class FakeFacility(ScanFacility):
    def __init__(self):
        self.cb: Optional[Callable[[], None]] = None
        self.last_cb: Optional[Callable[[], None]] = None
        self.results: List[str] = []
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.triggers = 0
        self.fail_subscribe = False
        self.fail_trigger = False
        self.fail_unsubscribe = False
        self.fail_results = False

    def subscribe(self, on_results_available) -> None:
        self.subscribe_calls += 1
        if self.fail_subscribe:
            raise FacilityError("radio off")
        self.cb = on_results_available
        self.last_cb = on_results_available

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        if self.fail_unsubscribe:
            raise FacilityError("not subscribed")
        self.cb = None

    def trigger_scan(self) -> None:
        if self.fail_trigger:
            raise FacilityError("scan throttled")
        self.triggers += 1

    def current_results(self) -> List[str]:
        if self.fail_results:
            raise FacilityError("results unavailable")
        return list(self.results)

    def deliver(self, names: List[str]) -> None:
        """Finish a scan: publish `names` and fire the subscribed callback."""
        self.results = list(names)
        if self.cb is not None:
            self.cb()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def facility() -> FakeFacility:
    return FakeFacility()
