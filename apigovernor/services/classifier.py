"""Classification of upstream failures as rate-limit responses.

Classification relies on structured signals only: a typed ``is_rate_limit``
predicate exposed by the client's exception, or an HTTP 429 status. Error
message wording is never inspected.
"""

from typing import Callable, Optional

import httpx

from apigovernor.services.models import ThrottleSignal

ThrottleClassifier = Callable[[BaseException], Optional[ThrottleSignal]]


def parse_retry_after(value: object) -> Optional[float]:
    """Parse a retry-after value in seconds.

    Accepts numbers and numeric strings (the delta-seconds form of the
    ``Retry-After`` header). Returns None for anything else, including
    non-positive values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if seconds != seconds or seconds <= 0:  # NaN or non-positive
        return None
    return seconds


def classify_throttle(exc: BaseException) -> Optional[ThrottleSignal]:
    """Default classifier.

    Args:
        exc: Exception raised by the wrapped operation.

    Returns:
        A ThrottleSignal if the exception is an upstream rate-limit
        response, otherwise None.
    """
    if getattr(exc, "is_rate_limit", False) is True:
        return ThrottleSignal(retry_after=parse_retry_after(getattr(exc, "retry_after", None)))

    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        return ThrottleSignal(
            retry_after=parse_retry_after(exc.response.headers.get("Retry-After"))
        )

    return None
