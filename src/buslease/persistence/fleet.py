"""Read access to drivers, buses and routes, plus the lightweight journey state."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Protocol

from ..db.supabase import get_supabase_client
from ..models.domain import BusRecord, DriverRecord, RouteRecord, Stop

logger = logging.getLogger(__name__)


class FleetDirectory(Protocol):
    def get_driver(self, driver_id: str) -> DriverRecord | None: ...

    def get_bus(self, bus_id: str) -> BusRecord | None: ...

    def get_route(self, route_id: str) -> RouteRecord | None: ...

    def get_push_tokens(self, bus_id: str) -> list[str]: ...


class JourneyStateWriter(Protocol):
    def mark_active(self, driver_id: str, bus_id: str, route_id: str, trip_id: str, started_at: datetime) -> None: ...

    def touch(self, driver_id: str, bus_id: str, at: datetime) -> None: ...

    def clear(self, bus_id: str) -> None: ...


def _int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def parse_stops(raw_stops: Iterable[dict[str, Any]] | None) -> list[Stop]:
    """Build stops from stored rows, accepting both camelCase and snake_case keys."""
    stops: list[Stop] = []
    for index, raw in enumerate(raw_stops or []):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed stop entry at position {index}")
            continue
        stops.append(
            Stop(
                name=str(raw.get("name") or ""),
                approximate_lat=_float(raw.get("lat", raw.get("approxLat", raw.get("approximate_lat")))),
                approximate_lng=_float(raw.get("lng", raw.get("approxLng", raw.get("approximate_lng")))),
                sequence=_int(raw.get("sequence"), index + 1) or index + 1,
                stop_id=raw.get("stopId") or raw.get("stop_id"),
            )
        )
    return sorted(stops, key=lambda stop: stop.sequence)


class InMemoryFleetDirectory:
    def __init__(
        self,
        drivers: Iterable[DriverRecord] = (),
        buses: Iterable[BusRecord] = (),
        routes: Iterable[RouteRecord] = (),
        push_tokens: dict[str, list[str]] | None = None,
    ) -> None:
        self.drivers = {driver.driver_id: driver for driver in drivers}
        self.buses = {bus.bus_id: bus for bus in buses}
        self.routes = {route.route_id: route for route in routes}
        self.push_tokens = push_tokens or {}

    def get_driver(self, driver_id: str) -> DriverRecord | None:
        return self.drivers.get(driver_id)

    def get_bus(self, bus_id: str) -> BusRecord | None:
        return self.buses.get(bus_id)

    def get_route(self, route_id: str) -> RouteRecord | None:
        return self.routes.get(route_id)

    def get_push_tokens(self, bus_id: str) -> list[str]:
        return list(self.push_tokens.get(bus_id, []))


class InMemoryJourneyState:
    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}

    def mark_active(self, driver_id: str, bus_id: str, route_id: str, trip_id: str, started_at: datetime) -> None:
        self.rows[bus_id] = {
            "driver_uid": driver_id,
            "bus_id": bus_id,
            "route_id": route_id,
            "trip_id": trip_id,
            "status": "on_trip",
            "started_at": started_at,
            "last_updated_at": started_at,
        }

    def touch(self, driver_id: str, bus_id: str, at: datetime) -> None:
        row = self.rows.get(bus_id)
        if row and row["driver_uid"] == driver_id:
            row["last_updated_at"] = at

    def clear(self, bus_id: str) -> None:
        self.rows.pop(bus_id, None)


class SupabaseFleetDirectory:
    """Fleet records stored in the ``users``, ``drivers``, ``buses``, ``routes``,
    ``students`` and ``fcm_tokens`` tables."""

    def __init__(self, client: Any | None = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise ValueError("Supabase is not configured; cannot read fleet records.")

    def _single(self, table: str, column: str, value: str) -> dict[str, Any] | None:
        response = self.client.table(table).select("*").eq(column, value).limit(1).execute()
        rows = response.data or []
        return rows[0] if rows else None

    def get_driver(self, driver_id: str) -> DriverRecord | None:
        row = self._single("drivers", "driver_id", driver_id)
        if not row:
            return None
        user = self._single("users", "uid", driver_id) or {}
        return DriverRecord(
            driver_id=driver_id,
            role=str(user.get("role") or row.get("role") or ""),
            assigned_bus_id=row.get("assigned_bus_id"),
            bus_id=row.get("bus_id"),
            name=row.get("full_name") or row.get("name"),
        )

    def get_bus(self, bus_id: str) -> BusRecord | None:
        row = self._single("buses", "bus_id", bus_id)
        if not row:
            return None
        route = row.get("route") if isinstance(row.get("route"), dict) else {}
        return BusRecord(
            bus_id=bus_id,
            bus_number=row.get("bus_number"),
            assigned_driver_id=row.get("assigned_driver_id"),
            active_driver_id=row.get("active_driver_id"),
            driver_uid=row.get("driver_uid"),
            route_id=row.get("route_id") or route.get("routeId"),
            route_name=route.get("routeName") or row.get("route_name"),
            stops=parse_stops(route.get("stops") or row.get("stops")),
        )

    def get_route(self, route_id: str) -> RouteRecord | None:
        row = self._single("routes", "route_id", route_id)
        if not row:
            return None
        return RouteRecord(
            route_id=route_id,
            name=str(row.get("route_name") or row.get("name") or route_id),
            stops=parse_stops(row.get("stops")),
        )

    def get_push_tokens(self, bus_id: str) -> list[str]:
        students = self.client.table("students").select("uid").eq("assigned_bus_id", bus_id).execute()
        student_ids = [row["uid"] for row in (students.data or []) if row.get("uid")]
        if not student_ids:
            return []
        tokens = self.client.table("fcm_tokens").select("device_token").in_("user_uid", student_ids).execute()
        return [row["device_token"] for row in (tokens.data or []) if row.get("device_token")]


class SupabaseJourneyState:
    """``driver_status`` rows that passengers' dashboards watch for an active trip."""

    table = "driver_status"

    def __init__(self, client: Any | None = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise ValueError("Supabase is not configured; cannot write journey state.")

    def mark_active(self, driver_id: str, bus_id: str, route_id: str, trip_id: str, started_at: datetime) -> None:
        self.client.table(self.table).upsert(
            {
                "driver_uid": driver_id,
                "bus_id": bus_id,
                "route_id": route_id,
                "trip_id": trip_id,
                "status": "on_trip",
                "started_at": started_at.isoformat(),
                "last_updated_at": started_at.isoformat(),
            },
            on_conflict="driver_uid",
        ).execute()

    def touch(self, driver_id: str, bus_id: str, at: datetime) -> None:
        (
            self.client.table(self.table)
            .update({"last_updated_at": at.isoformat()})
            .eq("driver_uid", driver_id)
            .eq("bus_id", bus_id)
            .execute()
        )

    def clear(self, bus_id: str) -> None:
        self.client.table(self.table).delete().eq("bus_id", bus_id).execute()
