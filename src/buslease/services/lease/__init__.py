"""Lease management services."""

from .manager import LockManager, utc_now
from .monitor import HeartbeatMonitor

__all__ = ["LockManager", "HeartbeatMonitor", "utc_now"]
