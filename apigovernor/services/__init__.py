"""Governor services: admission gate, classifier, governor and registry."""

from apigovernor.services.call_governor import CallGovernor
from apigovernor.services.classifier import classify_throttle, parse_retry_after
from apigovernor.services.models import (
    AdmissionDecision,
    GovernorStats,
    RateLimitState,
    ThrottleSignal,
)
from apigovernor.services.rate_limit_gate import RateLimitGate
from apigovernor.services.registry import GovernorRegistry, credential_fingerprint

__all__ = [
    "AdmissionDecision",
    "CallGovernor",
    "GovernorRegistry",
    "GovernorStats",
    "RateLimitGate",
    "RateLimitState",
    "ThrottleSignal",
    "classify_throttle",
    "credential_fingerprint",
    "parse_retry_after",
]
