"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

# OSRM response codes meaning "nothing found" rather than "request failed".
NO_MATCH_CODES = {"NoSegment", "NoMatch"}
NO_ROUTE_CODES = {"NoRoute", "NoSegment"}


class OSRMClient:
    """Nearest-road matching and route geometry against an OSRM server."""

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        """Create a short-lived client; instances may be shared across threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self.transport,
        )

    def _get_json(self, url: str, params: dict[str, Any]) -> dict:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    # OSRM reports NoSegment/NoRoute with a 400 and a JSON body
                    if response.status_code == 400:
                        data = response.json()
                        if "code" in data:
                            return data
                    response.raise_for_status()
                    return response.json()
                except (httpx.TimeoutException, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to reach OSRM service at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM request failed, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()

    def match_to_road(self, lat: float, lng: float, radius_m: float) -> tuple[float, float, float] | None:
        """Snap a coordinate to the nearest routable road within ``radius_m``.

        Returns:
            ``(lat, lng, distance_m)`` of the snapped point, or None when OSRM
            finds no road segment inside the radius.
        """
        url = f"{self.base_url}/nearest/v1/{self.profile}/{lng},{lat}"
        params = {"number": 1, "radiuses": f"{radius_m:g}"}
        data = self._get_json(url, params)

        code = data.get("code")
        if code in NO_MATCH_CODES:
            return None
        if code != "Ok":
            raise ValueError(f"OSRM nearest request failed: {data.get('message', code)}")

        waypoints = data.get("waypoints") or []
        if not waypoints:
            return None
        snapped_lng, snapped_lat = waypoints[0]["location"]
        return float(snapped_lat), float(snapped_lng), float(waypoints[0].get("distance") or 0.0)

    def route(self, coordinates: Sequence[tuple[float, float]]) -> list[tuple[float, float]] | None:
        """Get the drivable path through ``coordinates`` (lat, lng) in order.

        Returns:
            Decoded route geometry as (lat, lng) points, or None when OSRM
            reports that no route exists.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        coordinate_str = ";".join(f"{lng},{lat}" for lat, lng in coordinates)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        data = self._get_json(url, params)

        code = data.get("code")
        if code in NO_ROUTE_CODES:
            return None
        if code != "Ok":
            raise ValueError(f"OSRM route request failed: {data.get('message', code)}")

        routes = data.get("routes") or []
        if not routes or not routes[0].get("geometry"):
            return None
        return decode_polyline(routes[0]["geometry"])


def _decode_value(polyline: str, index: int) -> tuple[int, int]:
    shift = 0
    result = 0
    while True:
        b = ord(polyline[index]) - 63
        index += 1
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if (result & 1) else (result >> 1)
    return value, index


def decode_polyline(polyline: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode an encoded polyline (OSRM's default geometry format) to (lat, lng) points."""
    factor = 10 ** precision
    coordinates: list[tuple[float, float]] = []
    index = 0
    lat = 0
    lng = 0
    while index < len(polyline):
        d_lat, index = _decode_value(polyline, index)
        d_lng, index = _decode_value(polyline, index)
        lat += d_lat
        lng += d_lng
        coordinates.append((lat / factor, lng / factor))
    return coordinates


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a single nearest-road lookup."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        url = f"{base.rstrip('/')}/nearest/v1/{settings.osrm_profile}/13.388860,52.517037"
        response = httpx.get(url, params={"number": 1}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
