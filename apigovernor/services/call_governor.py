"""Call governor: the single entry point for calls to a rate-limited API.

Every governed call goes through the same steps:

1. Cache lookup (when a cache key is given); a hit returns immediately.
2. Admission through the RateLimitGate; a denial raises LocalThrottleError
   without invoking the operation.
3. The operation runs, bounded by the configured timeout. Its admission slot
   is consumed before it starts, whatever the outcome.
4. Success is cached; an upstream rate-limit failure blocks the gate and
   raises UpstreamThrottleError; any other failure propagates unchanged.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from apigovernor.core.cache import TTLCache
from apigovernor.core.config import Settings
from apigovernor.core.config import settings as default_settings
from apigovernor.core.logging import get_log_context, get_logger
from apigovernor.exceptions import (
    LocalThrottleError,
    OperationTimeoutError,
    UpstreamThrottleError,
)
from apigovernor.services.classifier import (
    ThrottleClassifier,
    classify_throttle,
    parse_retry_after,
)
from apigovernor.services.models import GovernorStats
from apigovernor.services.rate_limit_gate import RateLimitGate

logger = get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]

# Marker for "use the governor's configured timeout"
_DEFAULT_TIMEOUT: Any = object()


class CallGovernor:
    """Throttles, caches and classifies calls to one upstream budget.

    Create one instance per upstream budget (typically per credential) and
    share it between all callers of that budget.

    Example:
        >>> governor = CallGovernor.from_settings(settings, name="meta")
        >>> campaigns = await governor.execute(
        ...     lambda: client.get("act_1/campaigns"),
        ...     cache_key="campaigns_act_1",
        ... )
    """

    def __init__(
        self,
        gate: RateLimitGate,
        cache: TTLCache,
        default_retry_after: float = 30.0,
        operation_timeout: Optional[float] = None,
        classifier: ThrottleClassifier = classify_throttle,
        name: str = "default",
    ) -> None:
        """Initialize the governor.

        Args:
            gate: Admission gate holding the call budget.
            cache: Result cache for keyed calls.
            default_retry_after: Back-off in seconds when the upstream
                throttles without saying for how long.
            operation_timeout: Default per-call timeout in seconds, or None
                for no timeout.
            classifier: Maps an operation failure to a ThrottleSignal, or
                None when it is not a rate-limit response.
            name: Label used in logs and stats.
        """
        if default_retry_after <= 0:
            raise ValueError("default_retry_after must be positive")
        self.gate = gate
        self.cache = cache
        self.default_retry_after = default_retry_after
        self.operation_timeout = operation_timeout
        self.classifier = classifier
        self.name = name

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        classifier: ThrottleClassifier = classify_throttle,
    ) -> "CallGovernor":
        """Build a governor with its own gate and cache from settings."""
        config = config or default_settings
        gate = RateLimitGate(
            min_interval=config.min_interval_seconds,
            max_calls=config.max_calls_per_window,
            window=config.window_seconds,
            clock=clock,
        )
        cache = TTLCache(
            ttl=config.cache_ttl_seconds,
            max_entries=config.cache_max_entries,
            clock=clock,
        )
        return cls(
            gate=gate,
            cache=cache,
            default_retry_after=config.default_retry_after_seconds,
            operation_timeout=config.operation_timeout_seconds,
            classifier=classifier,
            name=name,
        )

    async def execute(
        self,
        operation: Operation[T],
        cache_key: Optional[str] = None,
        *,
        timeout: Optional[float] = _DEFAULT_TIMEOUT,
    ) -> T:
        """Run ``operation`` under the governor's admission and cache policy.

        Args:
            operation: Zero-argument callable returning an awaitable.
            cache_key: Optional key; successful results are cached under it
                and later calls with the same key are served from the cache.
                A ``None`` result is never served from the cache.
            timeout: Per-call timeout in seconds overriding the configured
                default; None disables the timeout.

        Returns:
            The operation's result, possibly from the cache.

        Raises:
            LocalThrottleError: The gate denied the call; the operation was
                not invoked.
            UpstreamThrottleError: The upstream rejected the call as rate
                limited; the gate is now blocked.
            OperationTimeoutError: The operation did not finish in time.
        """
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(
                    f"Cache hit for {cache_key}",
                    extra=get_log_context(governor=self.name, cache_key=cache_key),
                )
                return cached

        decision = self.gate.try_acquire()
        if not decision.allowed:
            logger.info(
                f"Call denied locally ({decision.reason}), "
                f"next call in {decision.retry_after:.1f}s",
                extra=get_log_context(
                    governor=self.name,
                    cache_key=cache_key,
                    reason=decision.reason,
                    retry_after=decision.retry_after,
                ),
            )
            raise LocalThrottleError(retry_after=decision.retry_after, reason=decision.reason)

        if timeout is _DEFAULT_TIMEOUT:
            timeout = self.operation_timeout

        started = time.perf_counter()
        try:
            result = await self._run(operation, timeout, cache_key)
        except Exception as exc:
            signal = self.classifier(exc)
            if signal is None:
                raise
            retry_after = parse_retry_after(signal.retry_after) or self.default_retry_after
            self.gate.record_throttled(retry_after)
            logger.warning(
                f"Upstream rate limit detected: {type(exc).__name__}: {exc}. "
                f"Blocking calls for {retry_after:.1f}s",
                extra=get_log_context(
                    governor=self.name, cache_key=cache_key, retry_after=retry_after
                ),
            )
            raise UpstreamThrottleError(retry_after=retry_after) from exc

        logger.debug(
            "Governed call succeeded",
            extra=get_log_context(
                governor=self.name,
                cache_key=cache_key,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            ),
        )

        if cache_key is not None:
            self._store(cache_key, result)
        return result

    async def _run(
        self, operation: Operation[T], timeout: Optional[float], cache_key: Optional[str]
    ) -> T:
        timeout_cm = asyncio.timeout(timeout)
        try:
            async with timeout_cm:
                return await operation()
        except TimeoutError as exc:
            # Only our own deadline becomes OperationTimeoutError
            if timeout_cm.expired():
                logger.warning(
                    f"Operation timed out after {timeout:.1f}s",
                    extra=get_log_context(governor=self.name, cache_key=cache_key),
                )
                raise OperationTimeoutError(timeout) from exc
            raise

    def _store(self, cache_key: str, value: Any) -> None:
        """Cache a result; failures are logged, never raised."""
        try:
            self.cache.set(cache_key, value)
        except Exception:
            logger.warning(
                f"Failed to cache result for {cache_key}",
                exc_info=True,
                extra=get_log_context(governor=self.name, cache_key=cache_key),
            )

    def clear_cache(self) -> None:
        """Drop every cached result."""
        self.cache.clear()

    def stats(self) -> GovernorStats:
        """Return a snapshot of the governor for monitoring."""
        state = self.gate.snapshot()
        return GovernorStats(
            name=self.name,
            call_count=state.call_count,
            max_calls=self.gate.max_calls,
            is_blocked=self.gate.is_blocked,
            next_call_in=self.gate.time_until_next_call(),
            window_resets_in=self.gate.time_until_window_reset(),
            cache_size=len(self.cache),
        )
