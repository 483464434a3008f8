import pytest

from buslease.models.domain import GeometrySource, ResolutionMethod, ResolvedStop, SnapMethod, SnappedStop, Stop
from buslease.services.geospatial import haversine_m, is_valid_coordinate
from buslease.services.routing import CoordinateResolver, RoadSnapper, RouteGeometryBuilder
from buslease.services.routing.resolver import hint_distance_m


class RecordingGeocoder:
    def __init__(self, results=None, error: Exception | None = None) -> None:
        self.results = results or {}
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def geocode(self, name: str, locality_hint: str = ""):
        self.calls.append((name, locality_hint))
        if self.error:
            raise self.error
        return self.results.get(name)


class DummyRouter:
    def __init__(self, matches=None, route_result=None, route_error: Exception | None = None) -> None:
        # matches: {(lat, lng): {radius: (lat, lng, distance) | Exception}}
        self.matches = matches or {}
        self.route_result = route_result
        self.route_error = route_error
        self.match_calls: list[tuple[float, float, float]] = []
        self.route_calls: list[list[tuple[float, float]]] = []

    def match_to_road(self, lat, lng, radius_m):
        self.match_calls.append((lat, lng, radius_m))
        outcome = self.matches.get((lat, lng), {}).get(radius_m)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def route(self, coordinates):
        self.route_calls.append(list(coordinates))
        if self.route_error:
            raise self.route_error
        return self.route_result


def _stop(name: str, lat: float, lng: float, sequence: int) -> Stop:
    return Stop(name=name, approximate_lat=lat, approximate_lng=lng, sequence=sequence)


def _resolved(name: str, lat: float, lng: float, sequence: int = 1) -> ResolvedStop:
    return ResolvedStop(stop=_stop(name, lat, lng, sequence), working_lat=lat, working_lng=lng, resolution_method=ResolutionMethod.STORED)


def _snapped(lat: float, lng: float, snapped: bool = True, method=ResolutionMethod.STORED) -> SnappedStop:
    resolved = ResolvedStop(stop=_stop("s", lat, lng, 1), working_lat=lat, working_lng=lng, resolution_method=method)
    return SnappedStop(resolved=resolved, snapped_lat=lat, snapped_lng=lng, is_snapped=snapped)


def test_haversine_distance_is_symmetric_and_reasonable():
    distance = haversine_m(26.1445, 91.7362, 26.1545, 91.7362)

    assert distance == pytest.approx(1112, rel=0.01)
    assert haversine_m(26.1545, 91.7362, 26.1445, 91.7362) == pytest.approx(distance)


@pytest.mark.parametrize(
    "lat,lng,expected",
    [
        (26.1, 91.7, True),
        (0.0, 0.0, False),
        (91.0, 10.0, False),
        (10.0, -181.0, False),
        (None, 10.0, False),
        (float("nan"), 10.0, False),
    ],
)
def test_is_valid_coordinate(lat, lng, expected):
    assert is_valid_coordinate(lat, lng) is expected


def test_stored_coordinates_skip_the_geocoder():
    geocoder = RecordingGeocoder()
    sleeps: list[float] = []
    resolver = CoordinateResolver(geocoder, delay_seconds=0.2, sleep=sleeps.append)
    stops = [_stop("A", 26.10, 91.70, 1), _stop("B", 26.11, 91.71, 2), _stop("C", 26.12, 91.72, 3)]

    resolved = resolver.resolve_all(stops)

    assert geocoder.calls == []
    assert sleeps == []
    assert [item.resolution_method for item in resolved] == [ResolutionMethod.STORED] * 3
    assert (resolved[1].working_lat, resolved[1].working_lng) == (26.11, 91.71)


def test_missing_coordinates_are_geocoded_with_locality_hint():
    geocoder = RecordingGeocoder({"Library": (26.15, 91.66)})
    resolver = CoordinateResolver(geocoder, locality_hint="Guwahati, Assam")

    resolved = resolver.resolve(_stop("Library", 0.0, 0.0, 1))

    assert geocoder.calls == [("Library", "Guwahati, Assam")]
    assert resolved.resolution_method is ResolutionMethod.GEOCODED
    assert (resolved.working_lat, resolved.working_lng) == (26.15, 91.66)


def test_half_filled_coordinate_is_not_treated_as_stored():
    geocoder = RecordingGeocoder({"Gate": (26.12, 91.8)})
    resolver = CoordinateResolver(geocoder)

    resolved = resolver.resolve(_stop("Gate", 26.1, 0.0, 1))

    assert resolved.resolution_method is ResolutionMethod.GEOCODED


def test_geocoded_result_far_from_stored_component_is_unresolved():
    geocoder = RecordingGeocoder({"Campus Gate": (40.71, -74.01)})
    resolver = CoordinateResolver(geocoder, locality_hint="Guwahati")

    resolved = resolver.resolve(_stop("Campus Gate", 26.16, 0.0, 1))

    assert geocoder.calls == [("Campus Gate", "Guwahati")]
    assert resolved.resolution_method is ResolutionMethod.UNRESOLVED
    assert (resolved.working_lat, resolved.working_lng) == (0.0, 0.0)


def test_plausibility_distance_is_configurable():
    geocoder = RecordingGeocoder({"Gate": (26.2, 91.8)})

    strict = CoordinateResolver(geocoder, max_hint_distance_m=5000).resolve(_stop("Gate", 26.1, 0.0, 1))
    loose = CoordinateResolver(geocoder, max_hint_distance_m=20000).resolve(_stop("Gate", 26.1, 0.0, 1))
    unchecked = CoordinateResolver(geocoder, max_hint_distance_m=None).resolve(_stop("Gate", 26.1, 0.0, 1))

    assert strict.resolution_method is ResolutionMethod.UNRESOLVED
    assert loose.resolution_method is ResolutionMethod.GEOCODED
    assert unchecked.resolution_method is ResolutionMethod.GEOCODED


def test_hint_distance_uses_only_usable_components():
    stop = _stop("Gate", 0.0, 91.8, 1)

    assert hint_distance_m(stop, 26.5, 91.8) == pytest.approx(0.0)
    assert hint_distance_m(_stop("Gate", 0.0, 0.0, 1), 26.5, 91.8) is None
    assert hint_distance_m(_stop("Gate", 126.0, 0.0, 1), 26.5, 91.8) is None


def test_out_of_range_stored_coordinate_is_geocoded():
    geocoder = RecordingGeocoder({"Gate": (26.2, 91.8)})
    resolver = CoordinateResolver(geocoder)

    resolved = resolver.resolve(_stop("Gate", 126.1, 91.8, 1))

    assert geocoder.calls == [("Gate", "")]
    assert resolved.resolution_method is ResolutionMethod.GEOCODED


def test_geocoder_failure_yields_unresolved_stop():
    resolver = CoordinateResolver(RecordingGeocoder(error=RuntimeError("rate limited")))

    resolved = resolver.resolve(_stop("Nowhere", 0.0, 0.0, 1))

    assert resolved.resolution_method is ResolutionMethod.UNRESOLVED
    assert (resolved.working_lat, resolved.working_lng) == (0.0, 0.0)
    assert not resolved.is_resolved


def test_unknown_place_and_missing_geocoder_yield_unresolved():
    assert CoordinateResolver(RecordingGeocoder()).resolve(_stop("Nowhere", 0, 0, 1)).resolution_method is ResolutionMethod.UNRESOLVED
    assert CoordinateResolver(None).resolve(_stop("Nowhere", 0, 0, 1)).resolution_method is ResolutionMethod.UNRESOLVED


def test_delay_only_between_geocoder_lookups():
    geocoder = RecordingGeocoder({"B": (26.2, 91.8), "D": (26.3, 91.9)})
    sleeps: list[float] = []
    resolver = CoordinateResolver(geocoder, delay_seconds=0.2, sleep=sleeps.append)
    stops = [
        _stop("A", 26.1, 91.7, 1),
        _stop("B", 0.0, 0.0, 2),
        _stop("C", 26.25, 91.85, 3),
        _stop("D", 0.0, 0.0, 4),
    ]

    resolved = resolver.resolve_all(stops)

    assert [name for name, _ in geocoder.calls] == ["B", "D"]
    assert sleeps == [0.2]
    assert [item.stop.name for item in resolved] == ["A", "B", "C", "D"]


def test_snapping_preserves_length_and_order():
    router = DummyRouter(matches={(26.1, 91.7): {350: (26.1001, 91.7001, 15.0)}})
    snapper = RoadSnapper(router)
    stops = [_resolved("A", 26.1, 91.7, 1), _resolved("B", 26.2, 91.8, 2)]

    report = snapper.snap_all(stops)

    assert [item.stop.name for item in report.stops] == ["A", "B"]
    assert report.stops[0].is_snapped is True
    assert report.stops[0].snap_method is SnapMethod.OSRM_NEAREST
    assert (report.stops[0].snapped_lat, report.stops[0].snapped_lng) == (26.1001, 91.7001)
    assert report.stops[1].is_snapped is False
    assert (report.stops[1].snapped_lat, report.stops[1].snapped_lng) == (26.2, 91.8)
    assert report.success_rate == pytest.approx(50.0)
    assert report.snapped_count == 1


def test_snapping_empty_list():
    report = RoadSnapper(DummyRouter()).snap_all([])

    assert report.stops == []
    assert report.success_rate == 0.0


def test_snapping_widens_radius_after_failure():
    router = DummyRouter(
        matches={(26.1, 91.7): {350: RuntimeError("timeout"), 700: (26.102, 91.702, 290.0)}}
    )

    snapped = RoadSnapper(router, radii_m=(350, 700)).snap(_resolved("A", 26.1, 91.7))

    assert [call[2] for call in router.match_calls] == [350, 700]
    assert snapped.is_snapped
    assert snapped.snap_radius_m == 700


def test_snapping_rejects_distant_roads():
    router = DummyRouter(matches={(26.1, 91.7): {350: (26.11, 91.71, 650.0), 700: (26.11, 91.71, 650.0)}})

    snapped = RoadSnapper(router, max_distance_m=500).snap(_resolved("A", 26.1, 91.7))

    assert snapped.is_snapped is False
    assert (snapped.snapped_lat, snapped.snapped_lng) == (26.1, 91.7)


def test_snapping_skips_unresolved_stops():
    router = DummyRouter()
    unresolved = ResolvedStop(stop=_stop("X", 0, 0, 1), working_lat=0.0, working_lng=0.0, resolution_method=ResolutionMethod.UNRESOLVED)

    snapped = RoadSnapper(router).snap(unresolved)

    assert router.match_calls == []
    assert snapped.is_snapped is False


def test_geometry_skipped_below_success_threshold():
    router = DummyRouter(route_result=[(26.1, 91.7), (26.2, 91.8)])
    builder = RouteGeometryBuilder(router, min_snap_success_rate=50)

    geometry = builder.build([_snapped(26.1, 91.7), _snapped(26.2, 91.8, snapped=False)], 40.0)

    assert router.route_calls == []
    assert geometry.points is None
    assert geometry.source is GeometrySource.NONE


def test_geometry_router_failure_yields_none_after_one_call():
    router = DummyRouter(route_error=ConnectionError("osrm down"))
    builder = RouteGeometryBuilder(router)

    geometry = builder.build([_snapped(26.1, 91.7), _snapped(26.2, 91.8)], 80.0)

    assert len(router.route_calls) == 1
    assert geometry.source is GeometrySource.NONE


def test_geometry_routes_through_resolved_stops_in_order():
    path = [(26.1, 91.7), (26.15, 91.75), (26.2, 91.8)]
    router = DummyRouter(route_result=path)
    stops = [
        _snapped(26.1, 91.7),
        _snapped(0.0, 0.0, snapped=False, method=ResolutionMethod.UNRESOLVED),
        _snapped(26.2, 91.8),
    ]

    geometry = RouteGeometryBuilder(router).build(stops, 66.7)

    assert router.route_calls == [[(26.1, 91.7), (26.2, 91.8)]]
    assert geometry.points == path
    assert geometry.source is GeometrySource.COMPUTED


def test_geometry_needs_two_points():
    router = DummyRouter(route_result=[(26.1, 91.7)])

    geometry = RouteGeometryBuilder(router).build([_snapped(26.1, 91.7)], 100.0)

    assert router.route_calls == []
    assert geometry.source is GeometrySource.NONE
