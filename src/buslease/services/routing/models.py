"""Routing collaborator interfaces and pipeline results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol, Sequence

from ...models.domain import SnappedStop


class Geocoder(Protocol):
    def geocode(self, name: str, locality_hint: str = "") -> tuple[float, float] | None: ...


class RoadRouter(Protocol):
    def match_to_road(self, lat: float, lng: float, radius_m: float) -> tuple[float, float, float] | None: ...

    def route(self, coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]] | None: ...


@dataclass(slots=True)
class SnapReport:
    stops: List[SnappedStop]
    success_rate: float

    @property
    def snapped_count(self) -> int:
        return sum(1 for stop in self.stops if stop.is_snapped)
