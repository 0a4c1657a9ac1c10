"""Custom exceptions for the governor."""

import math


class GovernorException(Exception):
    """Base class for governor exceptions with an HTTP status code.

    The status code lets web front-ends map governor failures to responses
    without knowing every subclass.
    """
    status_code: int = 500

    def __init__(self, message: str = "Governor error"):
        self.message = message
        super().__init__(message)


class LocalThrottleError(GovernorException):
    """Raised when the gate denies a call before any network traffic.

    Always recoverable by retrying after ``retry_after`` seconds; never
    indicates an upstream problem.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    BLOCKED = "blocked"
    MIN_INTERVAL = "min_interval"
    BUDGET = "budget"

    def __init__(self, retry_after: float, reason: str, detail: str | None = None):
        self.retry_after = max(0.0, retry_after)
        self.reason = reason
        message = detail or (
            f"Rate limit active ({reason}). "
            f"Next call allowed in {math.ceil(self.retry_after)}s."
        )
        super().__init__(message)


class UpstreamThrottleError(GovernorException):
    """Raised when the upstream API answered with a rate-limit response.

    The governor has been blocked for ``retry_after`` seconds; the upstream
    exception is available as ``__cause__``.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, retry_after: float, detail: str | None = None):
        self.retry_after = retry_after
        message = detail or (
            f"Too many calls to the upstream API. "
            f"Wait {math.ceil(retry_after)}s before trying again."
        )
        super().__init__(message)


class OperationTimeoutError(GovernorException):
    """Raised when a governed operation exceeds its timeout.

    The admission slot used by the call stays consumed.

    Maps to HTTP 504 Gateway Timeout.
    """
    status_code = 504

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Upstream operation timed out after {timeout:.1f}s")
