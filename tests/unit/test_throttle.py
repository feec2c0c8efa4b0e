"""
Unit tests for per-host request pacing
"""

import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from tilekit.throttle import HostThrottle


class FakeClock:
    """Monotonic clock that only moves when someone sleeps (or the test advances it)."""

    def __init__(self):
        self.t = 100.0
        self.sleeps = []

    def __call__(self):
        return self.t

    def sleep(self, s):
        self.sleeps.append(s)
        self.t += s


@pytest.fixture
def clock():
    return FakeClock()


class TestHostThrottle:
    """Test cases for HostThrottle"""

    def test_first_request_is_immediate(self, clock):
        th = HostThrottle(0.025, 0.1, clock=clock, sleep=clock.sleep)
        assert th.acquire("a.example") == 0
        assert clock.sleeps == []

    def test_back_to_back_requests_are_spaced(self, clock):
        th = HostThrottle(0.025, 0.1, clock=clock, sleep=clock.sleep)
        th.acquire("a.example")
        th.acquire("a.example")
        th.acquire("a.example")
        assert clock.sleeps == [pytest.approx(0.025), pytest.approx(0.025)]

    def test_hosts_are_independent(self, clock):
        th = HostThrottle(0.025, 0.1, clock=clock, sleep=clock.sleep)
        th.acquire("a.example")
        assert th.acquire("b.example") == 0

    def test_no_wait_once_interval_elapsed(self, clock):
        th = HostThrottle(0.025, 0.1, clock=clock, sleep=clock.sleep)
        th.acquire("a.example")
        clock.t += 1.0
        assert th.acquire("a.example") == 0

    def test_failure_adds_cooldown(self, clock):
        th = HostThrottle(0.025, 0.1, clock=clock, sleep=clock.sleep)
        th.acquire("a.example")
        th.penalize("a.example")
        waited = th.acquire("a.example")
        assert waited == pytest.approx(0.1)

    def test_cooldown_never_shortens_reservation(self, clock):
        th = HostThrottle(1.0, 0.1, clock=clock, sleep=clock.sleep)
        th.acquire("a.example")
        th.penalize("a.example")
        assert th.acquire("a.example") == pytest.approx(1.0)

    def test_reservations_accumulate_for_concurrent_callers(self):
        """Without sleeping in between, each caller gets the next free slot"""
        t = [0.0]
        waits = []
        th = HostThrottle(0.05, 0.1, clock=lambda: t[0], sleep=waits.append)
        for _ in range(4):
            th.acquire("a.example")
        assert waits == [pytest.approx(0.05), pytest.approx(0.10), pytest.approx(0.15)]

    def test_cooldown_holds_back_caller_already_sleeping_on_its_slot(self, clock):
        """A failure reported while another worker waits for its slot still delays that worker"""
        penalized = []

        def sleep(s):
            clock.sleep(s)
            if not penalized:
                penalized.append(clock.t)
                th.penalize("a.example")

        th = HostThrottle(0.05, 0.5, clock=clock, sleep=sleep)
        th.acquire("a.example")
        waited = th.acquire("a.example")

        assert penalized == [pytest.approx(100.05)]
        assert clock.t == pytest.approx(100.55)
        assert waited == pytest.approx(0.55)

    def test_cooldown_applies_to_later_slots_too(self, clock):
        th = HostThrottle(0.05, 0.5, clock=clock, sleep=clock.sleep)
        th.acquire("a.example")
        th.penalize("a.example")
        th.acquire("a.example")
        assert th.acquire("a.example") == pytest.approx(0.05)
        assert clock.t == pytest.approx(100.55)

    def test_cooldown_only_affects_its_host(self, clock):
        th = HostThrottle(0.05, 0.5, clock=clock, sleep=clock.sleep)
        th.penalize("a.example")
        assert th.acquire("b.example") == 0

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            HostThrottle(-1.0, 0.1)
