"""Exclusive per-bus journey leases: acquire, heartbeat-renew, release."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from ...config import settings
from ...exceptions import AlreadyActive, LeaseExpired, LockHeldByOther, NotHolder
from ...models.domain import Lease, LeaseState, LeaseStatus
from ...persistence.lease_store import LeaseStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LockManager:
    """Owns the exclusivity lease of each bus.

    Every operation is a single store transaction. Expiry is evaluated lazily
    against ``clock()`` whenever a lease is read; nothing sweeps stale leases.
    """

    def __init__(
        self,
        store: LeaseStore,
        clock: Callable[[], datetime] = utc_now,
        default_ttl_seconds: int | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.default_ttl_seconds = default_ttl_seconds or settings.lease_ttl_seconds

    def _ttl(self, ttl: float | timedelta | None) -> timedelta:
        if ttl is None:
            return timedelta(seconds=self.default_ttl_seconds)
        if isinstance(ttl, timedelta):
            return ttl
        return timedelta(seconds=ttl)

    def acquire(
        self,
        bus_id: str,
        holder_id: str,
        trip_id: str,
        ttl: float | timedelta | None = None,
    ) -> Lease:
        """Take the lease on ``bus_id`` for ``holder_id``.

        Raises:
            LockHeldByOther: a live lease belongs to someone else.
            AlreadyActive: ``holder_id`` already holds a live lease; its
                ``trip_id`` is the one to keep using.
        """
        lifetime = self._ttl(ttl)

        def decide(current: Lease) -> Lease:
            now = self.clock()
            if current.is_live(now):
                if current.holder_id != holder_id:
                    raise LockHeldByOther(bus_id=bus_id, holder_id=current.holder_id)
                raise AlreadyActive(bus_id=bus_id, trip_id=current.trip_id or trip_id)
            if current.is_expired(now):
                logger.info(
                    f"Lease on bus {bus_id} expired at {current.expires_at} "
                    f"(held by {current.holder_id}), allowing takeover by {holder_id}"
                )
            return Lease(
                bus_id=bus_id,
                holder_id=holder_id,
                trip_id=trip_id,
                state=LeaseState.HELD,
                acquired_at=now,
                expires_at=now + lifetime,
            )

        lease = self.store.transact(bus_id, decide)
        logger.info(f"Lease acquired on bus {bus_id} by {holder_id} for trip {trip_id} until {lease.expires_at}")
        return lease

    def heartbeat(
        self,
        bus_id: str,
        holder_id: str,
        trip_id: str,
        ttl: float | timedelta | None = None,
    ) -> Lease:
        """Extend the lease while ``holder_id`` still holds it for ``trip_id``.

        Raises:
            NotHolder: the lease is free or belongs to another holder or trip.
            LeaseExpired: the lease matched but expired; re-acquire instead of retrying.
        """
        lifetime = self._ttl(ttl)

        def decide(current: Lease) -> Lease:
            now = self.clock()
            if (
                current.state is not LeaseState.HELD
                or current.holder_id != holder_id
                or current.trip_id != trip_id
            ):
                raise NotHolder(bus_id=bus_id, holder_id=current.holder_id)
            if not current.is_live(now):
                raise LeaseExpired(bus_id=bus_id, trip_id=trip_id)
            return Lease(
                bus_id=bus_id,
                holder_id=holder_id,
                trip_id=trip_id,
                state=LeaseState.HELD,
                acquired_at=current.acquired_at,
                expires_at=max(now + lifetime, current.expires_at),
            )

        lease = self.store.transact(bus_id, decide)
        logger.debug(f"Lease on bus {bus_id} renewed by {holder_id} until {lease.expires_at}")
        return lease

    def release(self, bus_id: str, holder_id: str, trip_id: str) -> Lease:
        """Return the bus to free. Store failures are logged, never raised."""

        def decide(current: Lease) -> Lease | None:
            if current.state is LeaseState.FREE:
                return None
            if current.holder_id != holder_id or current.trip_id != trip_id:
                logger.warning(
                    f"Releasing lease on bus {bus_id} held by {current.holder_id} (trip {current.trip_id}) "
                    f"on request of {holder_id} (trip {trip_id})"
                )
            return Lease.free(bus_id)

        try:
            lease = self.store.transact(bus_id, decide)
        except Exception as exc:
            logger.error(f"Failed to release lease on bus {bus_id}: {exc}")
            return Lease.free(bus_id)
        logger.info(f"Lease on bus {bus_id} released by {holder_id}")
        return lease

    def release_held(self, bus_id: str, holder_id: str, trip_id: str) -> Lease:
        """Free the bus only on behalf of the holder of its live lease.

        An expired lease may be cleared by anyone. Store failures are logged,
        never raised, as in ``release``.

        Raises:
            NotHolder: a live lease belongs to another holder or trip.
        """

        def decide(current: Lease) -> Lease | None:
            if current.state is LeaseState.FREE:
                return None
            if current.holder_id != holder_id or current.trip_id != trip_id:
                if current.is_live(self.clock()):
                    raise NotHolder(bus_id=bus_id, holder_id=current.holder_id)
                logger.info(
                    f"Clearing expired lease on bus {bus_id} held by {current.holder_id} "
                    f"on request of {holder_id}"
                )
            return Lease.free(bus_id)

        try:
            lease = self.store.transact(bus_id, decide)
        except NotHolder:
            logger.warning(f"Refused release of bus {bus_id} by {holder_id} (trip {trip_id}): not the holder")
            raise
        except Exception as exc:
            logger.error(f"Failed to release lease on bus {bus_id}: {exc}")
            return Lease.free(bus_id)
        logger.info(f"Lease on bus {bus_id} released by {holder_id}")
        return lease

    def inspect(self, bus_id: str) -> LeaseStatus:
        lease = self.store.get(bus_id)
        return LeaseStatus(
            bus_id=bus_id,
            state=lease.state,
            holder_id=lease.holder_id,
            trip_id=lease.trip_id,
            acquired_at=lease.acquired_at,
            expires_at=lease.expires_at,
            live=lease.is_live(self.clock()),
        )
