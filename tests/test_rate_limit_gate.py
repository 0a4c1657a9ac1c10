"""Tests for the admission gate."""

import threading

import pytest

from apigovernor.exceptions import LocalThrottleError
from apigovernor.services.rate_limit_gate import RateLimitGate


@pytest.fixture
def gate(clock):
    return RateLimitGate(min_interval=15, max_calls=200, window=3600, clock=clock)


class TestMinInterval:
    """A call is never admitted sooner than min_interval after the last one."""

    def test_first_call_allowed(self, gate):
        assert gate.can_proceed() is True

    def test_denied_inside_interval(self, gate, clock):
        gate.record_success()
        clock.advance(14.9)
        assert gate.can_proceed() is False

    def test_allowed_after_interval(self, gate, clock):
        gate.record_success()
        clock.advance(15)
        assert gate.can_proceed() is True

    def test_admitted_calls_spaced_by_interval(self, gate, clock):
        """Consecutive admitted calls are at least min_interval apart."""
        admitted = []
        for _ in range(100):
            if gate.try_acquire().allowed:
                admitted.append(gate.snapshot().last_call_at)
            clock.advance(4)

        assert len(admitted) > 1
        gaps = [b - a for a, b in zip(admitted, admitted[1:])]
        assert all(gap >= 15 for gap in gaps)

    def test_time_until_next_call(self, gate, clock):
        assert gate.time_until_next_call() == 0.0
        gate.record_success()
        clock.advance(5)
        assert gate.time_until_next_call() == pytest.approx(10)


class TestBudget:
    """Per-window budget and rollover."""

    @pytest.fixture
    def small_gate(self, clock):
        return RateLimitGate(min_interval=0, max_calls=3, window=60, clock=clock)

    def test_budget_exhausted(self, small_gate):
        for _ in range(3):
            assert small_gate.try_acquire().allowed is True

        decision = small_gate.try_acquire()
        assert decision.allowed is False
        assert decision.reason == LocalThrottleError.BUDGET
        assert small_gate.snapshot().call_count == 3

    def test_fresh_budget_after_rollover(self, small_gate, clock):
        for _ in range(3):
            small_gate.try_acquire()

        clock.advance(60.01)
        for _ in range(3):
            assert small_gate.try_acquire().allowed is True
        assert small_gate.try_acquire().allowed is False

    def test_rollover_advances_reset_by_whole_windows(self, small_gate, clock):
        reset_at = small_gate.snapshot().window_reset_at
        clock.advance(60 * 2 + 30)

        state = small_gate.snapshot()
        assert state.call_count == 0
        assert state.window_reset_at == pytest.approx(reset_at + 2 * 60)
        assert state.window_reset_at > clock.now

    def test_budget_denial_waits_for_window_reset(self, small_gate, clock):
        for _ in range(3):
            small_gate.try_acquire()
        clock.advance(20)

        decision = small_gate.check()
        assert decision.retry_after == pytest.approx(40)
        assert small_gate.time_until_window_reset() == pytest.approx(40)

    def test_can_proceed_does_not_consume_budget(self, small_gate):
        for _ in range(10):
            assert small_gate.can_proceed() is True
        assert small_gate.snapshot().call_count == 0

    def test_concurrent_acquire_never_exceeds_budget(self, clock):
        gate = RateLimitGate(min_interval=0, max_calls=50, window=60, clock=clock)
        admitted = []

        def worker():
            for _ in range(20):
                if gate.try_acquire().allowed:
                    admitted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 50
        assert gate.snapshot().call_count == 50


class TestThrottleBlock:
    """Upstream throttling blocks all calls until it expires."""

    def test_block_denies_calls(self, gate, clock):
        gate.record_throttled(30)
        clock.advance(29)

        decision = gate.check()
        assert decision.allowed is False
        assert decision.reason == LocalThrottleError.BLOCKED
        assert decision.retry_after == pytest.approx(1)
        assert gate.is_blocked is True

    def test_block_expires(self, gate, clock):
        gate.record_throttled(30)
        clock.advance(30)

        assert gate.is_blocked is False
        assert gate.can_proceed() is True

    def test_block_overrides_budget_and_interval(self, clock):
        gate = RateLimitGate(min_interval=0, max_calls=100, window=60, clock=clock)
        gate.record_throttled(5)
        assert gate.can_proceed() is False

    def test_block_survives_window_rollover(self, clock):
        gate = RateLimitGate(min_interval=0, max_calls=10, window=10, clock=clock)
        gate.record_throttled(30)
        clock.advance(15)
        assert gate.can_proceed() is False

    def test_block_does_not_touch_counters(self, gate):
        gate.record_success()
        gate.record_throttled(30)
        assert gate.snapshot().call_count == 1

    def test_time_until_next_call_takes_larger_wait(self, gate, clock):
        gate.record_success()
        gate.record_throttled(5)
        assert gate.time_until_next_call() == pytest.approx(15)

        gate.record_throttled(40)
        assert gate.time_until_next_call() == pytest.approx(40)

    def test_non_positive_retry_after_rejected(self, gate):
        with pytest.raises(ValueError):
            gate.record_throttled(0)


class TestConfiguration:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_interval": -1, "max_calls": 1, "window": 1},
            {"min_interval": 0, "max_calls": 0, "window": 1},
            {"min_interval": 0, "max_calls": 1, "window": 0},
        ],
    )
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            RateLimitGate(**kwargs)
