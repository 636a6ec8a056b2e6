"""
Tests for debug output throttling during delta bursts.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from debug_throttle import BATCH_SIZE, DebugThrottle


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def make_throttle(clock=None, enabled=True):
    lines = []
    throttle = DebugThrottle(enabled=enabled, emit=lines.append, clock=clock or FakeClock())
    return throttle, lines


def test_batch_trigger_without_time_passing():
    """Test: N deltas with no time gap emit exactly floor(N/100) lines."""
    for n in (0, 99, 100, 250, 1000):
        throttle, lines = make_throttle()
        for _ in range(n):
            throttle.on_delta()
        assert len(lines) == n // BATCH_SIZE, f"n={n}: {lines}"


def test_interval_trigger():
    clock = FakeClock()
    throttle, lines = make_throttle(clock)

    for _ in range(10):
        throttle.on_delta()
    assert lines == []

    clock.now = 5.5
    assert throttle.on_delta() is True
    assert len(lines) == 1
    assert "interval" in lines[0]

    # time reference was reset, so the next delta is quiet
    assert throttle.on_delta() is False


def test_exactly_interval_does_not_trigger():
    clock = FakeClock()
    throttle, lines = make_throttle(clock)
    clock.now = 5.0
    throttle.on_delta()
    assert lines == []


def test_batch_trigger_resets_time_reference():
    clock = FakeClock()
    throttle, lines = make_throttle(clock)
    for _ in range(99):
        throttle.on_delta()

    clock.now = 4.0
    throttle.on_delta()  # 100th: batch
    clock.now = 8.0
    throttle.on_delta()  # only 4s since the batch line

    assert len(lines) == 1
    assert "100 delta events" in lines[0]


def test_disabled_does_nothing():
    throttle, lines = make_throttle(enabled=False)
    for _ in range(500):
        assert throttle.on_delta() is False
    assert throttle.count == 0
    assert lines == []


def test_reset_clears_counter():
    clock = FakeClock()
    throttle, lines = make_throttle(clock)
    for _ in range(150):
        throttle.on_delta()
    clock.now = 100.0
    throttle.reset()

    assert throttle.count == 0
    assert throttle.last_log == 100.0
    for _ in range(99):
        throttle.on_delta()
    assert len(lines) == 1


if __name__ == "__main__":
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    for test_fn in tests:
        test_fn()
        print(f"PASS: {test_fn.__name__}")
