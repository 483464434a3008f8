"""Exception hierarchy for lease contention and journey authorization."""

from __future__ import annotations


class BusLeaseError(Exception):
    """Base exception for all buslease errors."""


class LeaseError(BusLeaseError):
    """Expected contention outcome of a lease operation. Never auto-retried."""

    error_code = "LEASE_ERROR"

    def __init__(self, message: str, *, bus_id: str) -> None:
        self.bus_id = bus_id
        super().__init__(message)


class LockHeldByOther(LeaseError):
    """A live lease exists for a different holder.

    ``holder_id`` is exposed for operator messaging only.
    """

    error_code = "LOCKED_BY_OTHER"

    def __init__(self, *, bus_id: str, holder_id: str | None) -> None:
        self.holder_id = holder_id
        super().__init__(
            "This bus is currently being operated by another driver. Please wait or try again later.",
            bus_id=bus_id,
        )


class AlreadyActive(LeaseError):
    """The same holder already holds a live lease; callers reuse ``trip_id``."""

    error_code = "ALREADY_ACTIVE"

    def __init__(self, *, bus_id: str, trip_id: str) -> None:
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} already active on bus {bus_id}", bus_id=bus_id)


class NotHolder(LeaseError):
    """Heartbeat from an actor that does not hold the lease for this trip."""

    error_code = "NOT_HOLDER"

    def __init__(self, *, bus_id: str, holder_id: str | None = None) -> None:
        self.holder_id = holder_id
        super().__init__(f"Caller does not hold the lease on bus {bus_id}", bus_id=bus_id)


class LeaseExpired(LeaseError):
    """Heartbeat arrived after the lease expired; the caller must re-acquire."""

    error_code = "LEASE_EXPIRED"

    def __init__(self, *, bus_id: str, trip_id: str) -> None:
        self.trip_id = trip_id
        super().__init__(f"Lease for trip {trip_id} on bus {bus_id} has expired", bus_id=bus_id)


class LeaseStoreError(BusLeaseError):
    """The lease store could not complete a transaction."""


class JourneyError(BusLeaseError):
    """Terminal validation failure raised before any mutation."""


class NotAuthorized(JourneyError):
    """Actor is not a driver, or is not assigned to the bus in either direction."""


class ResourceNotFound(JourneyError):
    """Bus or route does not exist."""
