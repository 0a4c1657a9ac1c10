"""Outbound API governor: call admission, caching and throttle recovery."""

from apigovernor.exceptions import (
    GovernorException,
    LocalThrottleError,
    OperationTimeoutError,
    UpstreamThrottleError,
)
from apigovernor.services.call_governor import CallGovernor
from apigovernor.services.registry import GovernorRegistry

__all__ = [
    "CallGovernor",
    "GovernorRegistry",
    "GovernorException",
    "LocalThrottleError",
    "UpstreamThrottleError",
    "OperationTimeoutError",
]
