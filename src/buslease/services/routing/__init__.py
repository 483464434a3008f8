"""Stop resolution, road snapping and route geometry."""

from .geometry import RouteGeometryBuilder
from .models import Geocoder, RoadRouter, SnapReport
from .resolver import CoordinateResolver
from .snapper import RoadSnapper

__all__ = [
    "CoordinateResolver",
    "RoadSnapper",
    "RouteGeometryBuilder",
    "SnapReport",
    "Geocoder",
    "RoadRouter",
]
