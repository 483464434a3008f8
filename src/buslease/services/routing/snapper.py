"""Nearest-road snapping with incrementally widening search radii."""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import ResolvedStop, SnapMethod, SnappedStop
from ..geospatial import haversine_m
from .models import RoadRouter, SnapReport

logger = logging.getLogger(__name__)

DEFAULT_RADII_M = (350, 700)
DEFAULT_MAX_DISTANCE_M = 500.0


class RoadSnapper:
    """Moves each working coordinate onto the nearest usable road.

    A stop that cannot be snapped keeps its working coordinate with
    ``is_snapped=False``; the overall call never fails and never drops stops.
    """

    def __init__(
        self,
        router: RoadRouter | None,
        radii_m: Sequence[int] = DEFAULT_RADII_M,
        max_distance_m: float = DEFAULT_MAX_DISTANCE_M,
    ) -> None:
        self.router = router
        self.radii_m = tuple(radii_m)
        self.max_distance_m = max_distance_m

    def snap_all(self, stops: Sequence[ResolvedStop]) -> SnapReport:
        snapped = [self.snap(stop) for stop in stops]
        successes = sum(1 for stop in snapped if stop.is_snapped)
        success_rate = (successes / len(snapped)) * 100.0 if snapped else 0.0
        logger.info(f"Snapped {successes}/{len(snapped)} stops to roads ({success_rate:.0f}%)")
        return SnapReport(stops=snapped, success_rate=success_rate)

    def snap(self, stop: ResolvedStop) -> SnappedStop:
        unsnapped = SnappedStop(
            resolved=stop,
            snapped_lat=stop.working_lat,
            snapped_lng=stop.working_lng,
            is_snapped=False,
        )
        if self.router is None or not stop.is_resolved:
            return unsnapped

        for radius in self.radii_m:
            try:
                match = self.router.match_to_road(stop.working_lat, stop.working_lng, radius)
            except Exception as exc:
                logger.warning(f"Road matching failed for stop '{stop.stop.name}' at {radius}m: {exc}")
                continue
            if match is None:
                continue

            lat, lng, reported_distance = match
            distance = reported_distance or haversine_m(stop.working_lat, stop.working_lng, lat, lng)
            if distance > self.max_distance_m:
                logger.warning(
                    f"Snap rejected for stop '{stop.stop.name}': {distance:.1f}m > {self.max_distance_m:.0f}m limit"
                )
                continue

            return SnappedStop(
                resolved=stop,
                snapped_lat=lat,
                snapped_lng=lng,
                is_snapped=True,
                snap_method=SnapMethod.OSRM_NEAREST,
                snap_radius_m=radius,
                snap_distance_m=distance,
            )

        logger.warning(f"Could not snap stop '{stop.stop.name}' ({stop.working_lat}, {stop.working_lng})")
        return unsnapped
