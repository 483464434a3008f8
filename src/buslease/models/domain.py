"""Domain models for leases, stops and fleet records."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class LeaseState(str, enum.Enum):
    FREE = "free"
    HELD = "held"


class ResolutionMethod(str, enum.Enum):
    STORED = "stored"
    GEOCODED = "geocoded"
    UNRESOLVED = "unresolved"


class SnapMethod(str, enum.Enum):
    OSRM_NEAREST = "osrm-nearest"
    NONE = "none"


class GeometrySource(str, enum.Enum):
    COMPUTED = "computed"
    NONE = "none"


@dataclass(slots=True, frozen=True)
class Lease:
    """Exclusivity grant over one bus.

    A held lease whose ``expires_at`` has passed is expired: anyone may take it
    over, but nothing rewrites it until the next acquire or heartbeat.
    """

    bus_id: str
    holder_id: Optional[str] = None
    trip_id: Optional[str] = None
    state: LeaseState = LeaseState.FREE
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    version: int = 0

    @classmethod
    def free(cls, bus_id: str, version: int = 0) -> "Lease":
        return cls(bus_id=bus_id, version=version)

    def is_live(self, now: datetime) -> bool:
        return (
            self.state is LeaseState.HELD
            and self.expires_at is not None
            and now <= self.expires_at
        )

    def is_expired(self, now: datetime) -> bool:
        return self.state is LeaseState.HELD and not self.is_live(now)


@dataclass(slots=True, frozen=True)
class LeaseStatus:
    bus_id: str
    state: LeaseState
    holder_id: Optional[str]
    trip_id: Optional[str]
    acquired_at: Optional[datetime]
    expires_at: Optional[datetime]
    live: bool


@dataclass(slots=True, frozen=True)
class Stop:
    name: str
    approximate_lat: float
    approximate_lng: float
    sequence: int
    stop_id: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ResolvedStop:
    stop: Stop
    working_lat: float
    working_lng: float
    resolution_method: ResolutionMethod

    @property
    def is_resolved(self) -> bool:
        return self.resolution_method is not ResolutionMethod.UNRESOLVED


@dataclass(slots=True, frozen=True)
class SnappedStop:
    resolved: ResolvedStop
    snapped_lat: float
    snapped_lng: float
    is_snapped: bool
    snap_method: SnapMethod = SnapMethod.NONE
    snap_radius_m: Optional[int] = None
    snap_distance_m: Optional[float] = None

    @property
    def stop(self) -> Stop:
        return self.resolved.stop


@dataclass(slots=True, frozen=True)
class RouteGeometry:
    points: Optional[list[tuple[float, float]]]
    source: GeometrySource

    @classmethod
    def none(cls) -> "RouteGeometry":
        return cls(points=None, source=GeometrySource.NONE)


@dataclass(slots=True)
class DriverRecord:
    driver_id: str
    role: str = "driver"
    assigned_bus_id: Optional[str] = None
    bus_id: Optional[str] = None
    name: Optional[str] = None

    def claims_bus(self, bus_id: str) -> bool:
        return bus_id in (self.assigned_bus_id, self.bus_id)


@dataclass(slots=True)
class BusRecord:
    bus_id: str
    bus_number: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    active_driver_id: Optional[str] = None
    driver_uid: Optional[str] = None
    route_id: Optional[str] = None
    route_name: Optional[str] = None
    stops: list[Stop] = field(default_factory=list)

    def claims_driver(self, driver_id: str) -> bool:
        return driver_id in (self.assigned_driver_id, self.active_driver_id, self.driver_uid)


@dataclass(slots=True)
class RouteRecord:
    route_id: str
    name: str
    stops: list[Stop] = field(default_factory=list)
