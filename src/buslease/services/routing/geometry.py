"""Best-effort drivable route geometry through snapped stops."""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import GeometrySource, RouteGeometry, SnappedStop
from .models import RoadRouter

logger = logging.getLogger(__name__)

DEFAULT_MIN_SNAP_SUCCESS_RATE = 50.0


def routing_points(stops: Sequence[SnappedStop]) -> list[tuple[float, float]]:
    """Coordinates to route through, in stop order. Unresolved stops are skipped."""
    return [(stop.snapped_lat, stop.snapped_lng) for stop in stops if stop.resolved.is_resolved]


class RouteGeometryBuilder:
    def __init__(self, router: RoadRouter | None, min_snap_success_rate: float = DEFAULT_MIN_SNAP_SUCCESS_RATE) -> None:
        self.router = router
        self.min_snap_success_rate = min_snap_success_rate

    def build(self, stops: Sequence[SnappedStop], snap_success_rate: float) -> RouteGeometry:
        """Request one route through ``stops``; any failure yields no geometry."""
        if self.router is None:
            return RouteGeometry.none()
        if snap_success_rate < self.min_snap_success_rate:
            logger.info(
                f"Skipping route geometry: snap success {snap_success_rate:.0f}% "
                f"below {self.min_snap_success_rate:.0f}%"
            )
            return RouteGeometry.none()

        points = routing_points(stops)
        if len(points) < 2:
            return RouteGeometry.none()

        try:
            geometry = self.router.route(points)
        except Exception as exc:
            logger.warning(f"Route geometry request failed (non-critical): {exc}")
            return RouteGeometry.none()

        if not geometry:
            logger.warning(f"Router found no route through {len(points)} stops")
            return RouteGeometry.none()
        return RouteGeometry(points=list(geometry), source=GeometrySource.COMPUTED)
