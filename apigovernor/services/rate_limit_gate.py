"""Admission control for calls to a rate-limited upstream API.

The gate enforces three independent policies:

- a minimum interval between any two admitted calls,
- a per-window call budget,
- an explicit block set when the upstream reports throttling.

Upstream throttling responses are authoritative, so an active block denies
calls regardless of the local interval and budget bookkeeping.
"""

import dataclasses
import threading
import time
from typing import Callable

from apigovernor.exceptions import LocalThrottleError
from apigovernor.services.models import AdmissionDecision, RateLimitState

Clock = Callable[[], float]


class RateLimitGate:
    """Thread-safe admission gate.

    All state changes happen under a single lock. ``try_acquire`` performs
    window rollover, the admission decision and call recording as one
    atomic step, so two concurrent callers can never take the same budget
    slot.

    Example:
        >>> gate = RateLimitGate(min_interval=15, max_calls=200, window=3600)
        >>> decision = gate.try_acquire()
        >>> decision.allowed
        True
    """

    def __init__(
        self,
        min_interval: float,
        max_calls: int,
        window: float,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the gate.

        Args:
            min_interval: Minimum seconds between two admitted calls.
            max_calls: Maximum admitted calls per window.
            window: Window duration in seconds.
            clock: Monotonic time source in seconds.
        """
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window <= 0:
            raise ValueError("window must be positive")

        self.min_interval = min_interval
        self.max_calls = max_calls
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._state = RateLimitState(window_reset_at=clock() + window)

    # -- internal helpers, callers must hold self._lock ---------------------

    def _normalize(self, now: float) -> None:
        """Roll the window over once the reset time has passed."""
        state = self._state
        if now > state.window_reset_at:
            elapsed_windows = int((now - state.window_reset_at) // self.window) + 1
            state.call_count = 0
            state.window_reset_at += elapsed_windows * self.window

    def _block_remaining(self, now: float) -> float:
        blocked_until = self._state.blocked_until
        if blocked_until is None or now >= blocked_until:
            return 0.0
        return blocked_until - now

    def _interval_remaining(self, now: float) -> float:
        last_call_at = self._state.last_call_at
        if last_call_at is None:
            return 0.0
        return max(0.0, last_call_at + self.min_interval - now)

    def _decide(self, now: float) -> AdmissionDecision:
        self._normalize(now)

        block_wait = self._block_remaining(now)
        interval_wait = self._interval_remaining(now)
        budget_exhausted = self._state.call_count >= self.max_calls

        if not (block_wait or interval_wait or budget_exhausted):
            return AdmissionDecision(allowed=True)

        retry_after = max(block_wait, interval_wait)
        if budget_exhausted:
            retry_after = max(retry_after, self._state.window_reset_at - now)

        if block_wait:
            reason = LocalThrottleError.BLOCKED
        elif budget_exhausted:
            reason = LocalThrottleError.BUDGET
        else:
            reason = LocalThrottleError.MIN_INTERVAL
        return AdmissionDecision(allowed=False, reason=reason, retry_after=retry_after)

    def _record(self, now: float) -> None:
        self._state.last_call_at = now
        self._state.call_count += 1

    # -- public API ----------------------------------------------------------

    def can_proceed(self) -> bool:
        """Check whether a call may be made now without recording it.

        Performs window rollover as a side effect.
        """
        with self._lock:
            return self._decide(self._clock()).allowed

    def check(self) -> AdmissionDecision:
        """Like can_proceed, but returns the denial reason and wait time."""
        with self._lock:
            return self._decide(self._clock())

    def try_acquire(self) -> AdmissionDecision:
        """Atomically decide admission and, if allowed, record the call."""
        with self._lock:
            now = self._clock()
            decision = self._decide(now)
            if decision.allowed:
                self._record(now)
            return decision

    def record_success(self) -> None:
        """Record an admitted call: stamp it and consume one budget slot."""
        with self._lock:
            now = self._clock()
            self._normalize(now)
            self._record(now)

    def record_throttled(self, retry_after: float) -> None:
        """Block all calls for ``retry_after`` seconds.

        Independent of the interval and budget bookkeeping; replaces any
        block already in effect.
        """
        if retry_after <= 0:
            raise ValueError("retry_after must be positive")
        with self._lock:
            self._state.blocked_until = self._clock() + retry_after

    def time_until_next_call(self) -> float:
        """Seconds until the block and the minimum interval both allow a call."""
        with self._lock:
            now = self._clock()
            return max(self._block_remaining(now), self._interval_remaining(now))

    def time_until_window_reset(self) -> float:
        """Seconds until the call budget is replenished."""
        with self._lock:
            now = self._clock()
            self._normalize(now)
            return max(0.0, self._state.window_reset_at - now)

    @property
    def is_blocked(self) -> bool:
        """True while an upstream throttle block is in effect."""
        with self._lock:
            return self._block_remaining(self._clock()) > 0

    def snapshot(self) -> RateLimitState:
        """Return a copy of the current state."""
        with self._lock:
            self._normalize(self._clock())
            return dataclasses.replace(self._state)
