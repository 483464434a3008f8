"""Journey start/heartbeat/end orchestration around the bus lease."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...config import settings
from ...exceptions import AlreadyActive, NotAuthorized, ResourceNotFound
from ...models.domain import BusRecord, GeometrySource, Lease, LeaseStatus, RouteGeometry, SnappedStop, Stop
from ...persistence.fleet import FleetDirectory, JourneyStateWriter
from ..lease.manager import LockManager
from ..notifications.broadcast import BroadcastPublisher, trip_channel
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.push import PushSender
from ..routing.geometry import RouteGeometryBuilder
from ..routing.resolver import CoordinateResolver
from ..routing.snapper import RoadSnapper

logger = logging.getLogger(__name__)

DRIVER_ROLE = "driver"


@dataclass(slots=True)
class JourneyStart:
    trip_id: str
    bus_id: str
    route_id: str
    already_active: bool = False
    started: bool = True
    route_geometry: Optional[List[tuple[float, float]]] = None
    geometry_source: GeometrySource = GeometrySource.NONE
    snapped_stops: List[SnappedStop] = field(default_factory=list)
    snap_success_rate: float = 0.0
    started_at: Optional[datetime] = None
    processing_time_ms: int = 0


def new_trip_id(bus_id: str, now: datetime) -> str:
    return f"trip_{bus_id}_{int(now.timestamp() * 1000)}_{secrets.token_hex(3)}"


class JourneyOrchestrator:
    """Entry points a driver client calls: start, heartbeat, end.

    Acquiring the lease is the hard gate of ``start_journey``; everything
    after it (stop resolution, snapping, geometry, journey state, notifications)
    degrades instead of failing the call.
    """

    def __init__(
        self,
        lock_manager: LockManager,
        fleet: FleetDirectory,
        resolver: CoordinateResolver,
        snapper: RoadSnapper,
        geometry_builder: RouteGeometryBuilder,
        journey_state: JourneyStateWriter | None = None,
        broadcaster: BroadcastPublisher | None = None,
        push_sender: PushSender | None = None,
        dispatcher: NotificationDispatcher | None = None,
        lease_ttl_seconds: int | None = None,
    ) -> None:
        self.lock_manager = lock_manager
        self.fleet = fleet
        self.resolver = resolver
        self.snapper = snapper
        self.geometry_builder = geometry_builder
        self.journey_state = journey_state
        self.broadcaster = broadcaster
        self.push_sender = push_sender
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.lease_ttl_seconds = lease_ttl_seconds or settings.lease_ttl_seconds

    def _authorize(self, actor_id: str, bus_id: str) -> BusRecord:
        driver = self.fleet.get_driver(actor_id)
        if driver is None or driver.role != DRIVER_ROLE:
            raise NotAuthorized(f"User {actor_id} is not authorized as a driver")

        bus = self.fleet.get_bus(bus_id)
        if bus is None:
            raise ResourceNotFound(f"Bus {bus_id} not found")

        # Either side of the assignment is accepted; the two records may disagree.
        driver_claims_bus = driver.claims_bus(bus_id)
        bus_claims_driver = bus.claims_driver(actor_id)
        if not driver_claims_bus and not bus_claims_driver:
            logger.error(
                f"Driver assignment validation failed: driver={actor_id} bus={bus_id} "
                f"(driver record: {driver.assigned_bus_id}/{driver.bus_id}; "
                f"bus record: {bus.assigned_driver_id}/{bus.active_driver_id}/{bus.driver_uid})"
            )
            raise NotAuthorized(f"Driver {actor_id} is not assigned to bus {bus_id}")
        return bus

    def _load_stops(self, bus: BusRecord, route_ref: str) -> tuple[str, list[Stop]]:
        if bus.stops and route_ref in (bus.route_id, None, ""):
            return bus.route_name or route_ref, list(bus.stops)
        route = self.fleet.get_route(route_ref)
        if route is not None:
            return route.name, list(route.stops)
        if bus.stops:
            logger.warning(f"Route {route_ref} not found; using stops stored on bus {bus.bus_id}")
            return bus.route_name or route_ref, list(bus.stops)
        raise ResourceNotFound(f"Route {route_ref} not found")

    def start_journey(self, actor_id: str, bus_id: str, route_ref: str) -> JourneyStart:
        """Start (or resume) the journey of ``actor_id`` on ``bus_id``.

        Raises:
            NotAuthorized, ResourceNotFound: before any state is touched.
            LockHeldByOther: another driver holds a live lease.
            LeaseStoreError: the lease store is unavailable.
        """
        started = time.perf_counter()
        logger.info(f"Starting journey for bus {bus_id}, route {route_ref}, driver {actor_id}")

        bus = self._authorize(actor_id, bus_id)
        route_name, stops = self._load_stops(bus, route_ref)

        now = self.lock_manager.clock()
        trip_id = new_trip_id(bus_id, now)
        try:
            lease = self.lock_manager.acquire(bus_id, actor_id, trip_id, ttl=self.lease_ttl_seconds)
        except AlreadyActive as exc:
            logger.info(f"Trip already active for driver {actor_id} on bus {bus_id}: {exc.trip_id}")
            return JourneyStart(
                trip_id=exc.trip_id,
                bus_id=bus_id,
                route_id=route_ref,
                already_active=True,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
            )

        geometry, snapped, success_rate = self._prepare_route(stops)

        self._write_journey_state(actor_id, bus_id, route_ref, trip_id, lease)
        self._notify_trip_started(bus, route_ref, route_name, actor_id, trip_id, now)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"Journey start for bus {bus_id} completed in {elapsed_ms}ms (trip {trip_id})")
        return JourneyStart(
            trip_id=trip_id,
            bus_id=bus_id,
            route_id=route_ref,
            route_geometry=geometry.points,
            geometry_source=geometry.source,
            snapped_stops=snapped,
            snap_success_rate=success_rate,
            started_at=lease.acquired_at,
            processing_time_ms=elapsed_ms,
        )

    def _prepare_route(self, stops: list[Stop]) -> tuple[RouteGeometry, list[SnappedStop], float]:
        try:
            resolved = self.resolver.resolve_all(stops)
            report = self.snapper.snap_all(resolved)
            geometry = self.geometry_builder.build(report.stops, report.success_rate)
            return geometry, report.stops, report.success_rate
        except Exception:
            logger.exception("Route preparation failed (non-critical); continuing without geometry")
            return RouteGeometry.none(), [], 0.0

    def _write_journey_state(self, actor_id: str, bus_id: str, route_id: str, trip_id: str, lease: Lease) -> None:
        if self.journey_state is None:
            return
        try:
            self.journey_state.mark_active(actor_id, bus_id, route_id, trip_id, lease.acquired_at or self.lock_manager.clock())
        except Exception as exc:
            logger.error(f"Failed to write journey state for bus {bus_id}: {exc}")

    def _notify_trip_started(
        self, bus: BusRecord, route_id: str, route_name: str, actor_id: str, trip_id: str, now: datetime
    ) -> None:
        if self.broadcaster is not None:
            payload = {
                "busId": bus.bus_id,
                "routeId": route_id,
                "driverUid": actor_id,
                "tripId": trip_id,
                "routeName": route_name,
                "timestamp": now.isoformat(),
            }
            self.dispatcher.dispatch(
                "broadcast trip_started", self.broadcaster.publish, trip_channel(bus.bus_id), "trip_started", payload
            )
        if self.push_sender is not None:
            self.dispatcher.dispatch(
                "push trip_started", self._push_trip_started, bus, route_name, trip_id
            )

    def _push_trip_started(self, bus: BusRecord, route_name: str, trip_id: str) -> None:
        tokens = self.fleet.get_push_tokens(bus.bus_id)
        if not tokens:
            logger.info(f"No devices to notify for bus {bus.bus_id}")
            return
        self.push_sender.send(
            tokens,
            title=f"{route_name} - Trip Started",
            body=f"Bus {bus.bus_number or bus.bus_id} has started its journey",
            data={"type": "trip_started", "busId": bus.bus_id, "tripId": trip_id},
        )

    def heartbeat(self, actor_id: str, bus_id: str, trip_id: str) -> Lease:
        """Renew the lease. Raises ``NotHolder`` or ``LeaseExpired`` verbatim."""
        lease = self.lock_manager.heartbeat(bus_id, actor_id, trip_id, ttl=self.lease_ttl_seconds)
        if self.journey_state is not None:
            try:
                self.journey_state.touch(actor_id, bus_id, self.lock_manager.clock())
            except Exception as exc:
                logger.warning(f"Failed to refresh journey state for bus {bus_id}: {exc}")
        return lease

    def end_journey(self, actor_id: str, bus_id: str, trip_id: str) -> Lease:
        """Release the bus and tell passengers the trip ended.

        Raises:
            NotAuthorized, ResourceNotFound: as for ``start_journey``.
            NotHolder: a live lease on the bus belongs to another driver or trip;
                nothing is written.

        Collaborator failures after the release are logged only.
        """
        self._authorize(actor_id, bus_id)
        lease = self.lock_manager.release_held(bus_id, actor_id, trip_id)
        if self.journey_state is not None:
            try:
                self.journey_state.clear(bus_id)
            except Exception as exc:
                logger.error(f"Failed to clear journey state for bus {bus_id}: {exc}")
        if self.broadcaster is not None:
            payload = {
                "busId": bus_id,
                "tripId": trip_id,
                "driverUid": actor_id,
                "timestamp": self.lock_manager.clock().isoformat(),
            }
            self.dispatcher.dispatch(
                "broadcast trip_ended", self.broadcaster.publish, trip_channel(bus_id), "trip_ended", payload
            )
        return lease

    def lease_status(self, bus_id: str) -> LeaseStatus:
        return self.lock_manager.inspect(bus_id)
