"""Governor data models.

This module contains dataclasses for gate state, admission decisions,
throttle signals and monitoring statistics.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RateLimitState:
    """Call history tracked by a RateLimitGate.

    ``last_call_at`` is None until the first call is admitted, so the very
    first call is never held back by the minimum interval.
    """
    window_reset_at: float
    call_count: int = 0
    last_call_at: Optional[float] = None
    blocked_until: Optional[float] = None


@dataclass(frozen=True)
class AdmissionDecision:
    """Result of an admission check."""
    allowed: bool
    reason: Optional[str] = None
    retry_after: float = 0.0


@dataclass(frozen=True)
class ThrottleSignal:
    """Upstream rate-limit signal extracted from a failed operation.

    ``retry_after`` is None when the upstream did not say how long to wait.
    """
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class GovernorStats:
    """Point-in-time view of a governor, for monitoring dashboards."""
    name: str
    call_count: int
    max_calls: int
    is_blocked: bool
    next_call_in: float
    window_resets_in: float
    cache_size: int
