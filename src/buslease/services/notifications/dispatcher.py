"""Fire-and-forget execution of collaborator notifications."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from ...config import settings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Runs notification tasks on a bounded worker pool.

    Tasks are submitted after the authoritative state has committed. A failing
    task is logged and dropped; it can never reach the caller.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.notification_workers,
            thread_name_prefix="notify",
        )

    def dispatch(self, description: str, task: Callable[..., Any], *args: Any, **kwargs: Any) -> Future | None:
        def run() -> None:
            try:
                task(*args, **kwargs)
            except Exception:
                logger.exception(f"Notification task '{description}' failed")

        try:
            return self._executor.submit(run)
        except RuntimeError as exc:
            # Executor already shut down
            logger.error(f"Could not schedule notification task '{description}': {exc}")
            return None

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
