"""Client-side bookkeeping of heartbeat outcomes."""

from __future__ import annotations

import logging

from ...exceptions import LeaseError, LeaseExpired

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_FAILURES = 2


class HeartbeatMonitor:
    """Tracks whether a driver session may still assume it owns the bus.

    Two failed heartbeats in a row, or any ``LeaseExpired``, mean the lease
    must be treated as lost until it is acquired again.
    """

    def __init__(self, max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES) -> None:
        self.max_consecutive_failures = max_consecutive_failures
        self.consecutive_failures = 0
        self.expired = False

    @property
    def is_dead(self) -> bool:
        return self.expired or self.consecutive_failures >= self.max_consecutive_failures

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self, error: Exception | None = None) -> None:
        self.consecutive_failures += 1
        if isinstance(error, LeaseExpired):
            self.expired = True
        if self.is_dead:
            reason = error.error_code if isinstance(error, LeaseError) else "consecutive failures"
            logger.warning(f"Heartbeat session considered dead ({reason}, {self.consecutive_failures} in a row)")

    def reset(self) -> None:
        self.consecutive_failures = 0
        self.expired = False
