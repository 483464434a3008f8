"""Journey request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Lease, LeaseStatus, SnappedStop


class StartJourneyRequest(BaseModel):
    actor_id: str = Field(..., min_length=1, description="Verified id of the driver starting the journey.")
    bus_id: str = Field(..., min_length=1)
    route_id: str = Field(..., min_length=1)


class TripRequest(BaseModel):
    actor_id: str = Field(..., min_length=1)
    bus_id: str = Field(..., min_length=1)
    trip_id: str = Field(..., min_length=1)


class SnappedStopModel(BaseModel):
    stop_id: Optional[str] = None
    name: str
    sequence: int
    approx_lat: float
    approx_lng: float
    working_lat: float
    working_lng: float
    resolution_method: str
    snapped_lat: float
    snapped_lng: float
    is_snapped: bool
    snapping_method: str

    @classmethod
    def from_domain(cls, snapped: SnappedStop) -> "SnappedStopModel":
        stop = snapped.stop
        return cls(
            stop_id=stop.stop_id,
            name=stop.name,
            sequence=stop.sequence,
            approx_lat=stop.approximate_lat,
            approx_lng=stop.approximate_lng,
            working_lat=snapped.resolved.working_lat,
            working_lng=snapped.resolved.working_lng,
            resolution_method=snapped.resolved.resolution_method.value,
            snapped_lat=snapped.snapped_lat,
            snapped_lng=snapped.snapped_lng,
            is_snapped=snapped.is_snapped,
            snapping_method=snapped.snap_method.value,
        )


class StartJourneyResponse(BaseModel):
    success: bool = True
    started: bool = True
    already_active: bool = False
    message: str
    trip_id: str
    bus_id: str
    route_id: str
    route_geometry: Optional[List[List[float]]] = None
    route_geometry_source: str = "none"
    snapped_stops: List[SnappedStopModel] = Field(default_factory=list)
    snap_success_rate: float = 0.0
    timestamp: Optional[datetime] = None
    processing_time_ms: int = 0


class LeaseModel(BaseModel):
    bus_id: str
    state: str
    holder_id: Optional[str] = None
    trip_id: Optional[str] = None
    acquired_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_lease(cls, lease: Lease) -> "LeaseModel":
        return cls(
            bus_id=lease.bus_id,
            state=lease.state.value,
            holder_id=lease.holder_id,
            trip_id=lease.trip_id,
            acquired_at=lease.acquired_at,
            expires_at=lease.expires_at,
        )


class LeaseStatusModel(LeaseModel):
    live: bool

    @classmethod
    def from_status(cls, status: LeaseStatus) -> "LeaseStatusModel":
        return cls(
            bus_id=status.bus_id,
            state=status.state.value,
            holder_id=status.holder_id,
            trip_id=status.trip_id,
            acquired_at=status.acquired_at,
            expires_at=status.expires_at,
            live=status.live,
        )


class HeartbeatResponse(BaseModel):
    success: bool = True
    lease: LeaseModel
    next_heartbeat_seconds: int


class EndJourneyResponse(BaseModel):
    success: bool = True
    message: str
    lease: LeaseModel
