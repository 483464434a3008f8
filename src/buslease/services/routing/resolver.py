"""Working-coordinate resolution for route stops."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Sequence

from ...models.domain import ResolutionMethod, ResolvedStop, Stop
from ..geospatial import haversine_m, is_valid_coordinate
from .models import Geocoder

logger = logging.getLogger(__name__)

DEFAULT_MAX_HINT_DISTANCE_M = 5000.0


def _has_stored_coordinate(stop: Stop) -> bool:
    # Either component at 0 marks a coordinate that was never filled in
    if not stop.approximate_lat or not stop.approximate_lng:
        return False
    return is_valid_coordinate(stop.approximate_lat, stop.approximate_lng)


def _usable(value: float, limit: float) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number or math.isnan(number) or abs(number) > limit:
        return None
    return number


def hint_distance_m(stop: Stop, lat: float, lng: float) -> float | None:
    """Distance from a geocoded point to whatever part of the stored coordinate is usable.

    A stop with only one usable component is compared along that axis alone.
    Returns None when the stop carries no usable component.
    """
    hint_lat = _usable(stop.approximate_lat, 90.0)
    hint_lng = _usable(stop.approximate_lng, 180.0)
    if hint_lat is None and hint_lng is None:
        return None
    return haversine_m(
        hint_lat if hint_lat is not None else lat,
        hint_lng if hint_lng is not None else lng,
        lat,
        lng,
    )


class CoordinateResolver:
    """Turns a stop into a working coordinate.

    Stored coordinates are used as-is. Anything else goes through the geocoder;
    a result farther than ``max_hint_distance_m`` from the partial stored
    coordinate is treated as ambiguous. A failed or ambiguous lookup yields an
    ``unresolved`` stop at (0, 0) instead of an error so the remaining stops
    are still processed.
    """

    def __init__(
        self,
        geocoder: Geocoder | None,
        locality_hint: str = "",
        delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        max_hint_distance_m: float | None = DEFAULT_MAX_HINT_DISTANCE_M,
    ) -> None:
        self.geocoder = geocoder
        self.locality_hint = locality_hint
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self.max_hint_distance_m = max_hint_distance_m

    def resolve(self, stop: Stop) -> ResolvedStop:
        resolved, _ = self._resolve(stop)
        return resolved

    def resolve_all(self, stops: Sequence[Stop]) -> list[ResolvedStop]:
        """Resolve stops in order, pausing between consecutive geocoder hits."""
        results: list[ResolvedStop] = []
        geocoder_used = False
        for stop in stops:
            if geocoder_used and self.delay_seconds > 0 and self._needs_lookup(stop):
                self.sleep(self.delay_seconds)
            resolved, hit = self._resolve(stop)
            geocoder_used = geocoder_used or hit
            results.append(resolved)

        counts = {method: 0 for method in ResolutionMethod}
        for item in results:
            counts[item.resolution_method] += 1
        logger.info(
            f"Resolved {len(results)} stops: {counts[ResolutionMethod.STORED]} stored, "
            f"{counts[ResolutionMethod.GEOCODED]} geocoded, {counts[ResolutionMethod.UNRESOLVED]} unresolved"
        )
        return results

    def _needs_lookup(self, stop: Stop) -> bool:
        if self.geocoder is None or not stop.name:
            return False
        return not _has_stored_coordinate(stop)

    def _resolve(self, stop: Stop) -> tuple[ResolvedStop, bool]:
        if _has_stored_coordinate(stop):
            return (
                ResolvedStop(
                    stop=stop,
                    working_lat=float(stop.approximate_lat),
                    working_lng=float(stop.approximate_lng),
                    resolution_method=ResolutionMethod.STORED,
                ),
                False,
            )

        unresolved = ResolvedStop(stop=stop, working_lat=0.0, working_lng=0.0, resolution_method=ResolutionMethod.UNRESOLVED)
        if self.geocoder is None or not stop.name:
            return unresolved, False

        try:
            location = self.geocoder.geocode(stop.name, self.locality_hint)
        except Exception as exc:
            logger.warning(f"Geocoding failed for stop '{stop.name}': {exc}")
            return unresolved, True

        if location is None or not is_valid_coordinate(*location):
            logger.warning(f"Stop '{stop.name}' could not be geocoded")
            return unresolved, True

        lat, lng = location
        if self.max_hint_distance_m is not None:
            distance = hint_distance_m(stop, lat, lng)
            if distance is not None and distance >= self.max_hint_distance_m:
                logger.warning(
                    f"Geocoded stop '{stop.name}' lies {distance:.0f}m from its stored coordinate; treating as ambiguous"
                )
                return unresolved, True

        logger.debug(f"Geocoded stop '{stop.name}' to ({lat}, {lng})")
        return ResolvedStop(stop=stop, working_lat=lat, working_lng=lng, resolution_method=ResolutionMethod.GEOCODED), True
