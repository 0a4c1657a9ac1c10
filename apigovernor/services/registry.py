"""Per-credential governor instances.

Each upstream credential carries its own call budget, so each gets its own
CallGovernor. Credentials are only kept as truncated SHA-256 digests.
"""

import hashlib
import threading
import time
from typing import Callable, Dict

from apigovernor.core.config import Settings
from apigovernor.core.config import settings as default_settings
from apigovernor.core.logging import get_logger
from apigovernor.services.call_governor import CallGovernor
from apigovernor.services.classifier import ThrottleClassifier, classify_throttle

logger = get_logger(__name__)


def credential_fingerprint(credential: str) -> str:
    """Return a stable, non-reversible identifier for a credential."""
    # 32 hex chars (128 bits) is plenty to avoid collisions
    return hashlib.sha256(credential.encode()).hexdigest()[:32]


class GovernorRegistry:
    """Lazily creates and holds one CallGovernor per credential.

    Example:
        >>> registry = GovernorRegistry()
        >>> governor = registry.get(access_token)
    """

    def __init__(
        self,
        config: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        classifier: ThrottleClassifier = classify_throttle,
    ) -> None:
        self._config = config or default_settings
        self._clock = clock
        self._classifier = classifier
        self._governors: Dict[str, CallGovernor] = {}
        self._lock = threading.Lock()

    def get(self, credential: str) -> CallGovernor:
        """Return the governor for ``credential``, creating it on first use."""
        if not credential:
            raise ValueError("credential must not be empty")
        fingerprint = credential_fingerprint(credential)
        with self._lock:
            governor = self._governors.get(fingerprint)
            if governor is None:
                governor = CallGovernor.from_settings(
                    self._config,
                    name=fingerprint[:8],
                    clock=self._clock,
                    classifier=self._classifier,
                )
                self._governors[fingerprint] = governor
                logger.debug(f"Created governor {governor.name}")
            return governor

    def reset(self) -> None:
        """Drop all governors. Primarily useful for testing."""
        with self._lock:
            self._governors.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._governors)
