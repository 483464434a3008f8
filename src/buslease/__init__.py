"""Exclusive bus journey leases with heartbeat liveness and route preparation."""

__version__ = "0.1.0"
