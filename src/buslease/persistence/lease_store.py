"""Lease persistence with per-bus atomic read-compare-write transactions."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from postgrest.exceptions import APIError

from ..config import settings
from ..db.supabase import get_supabase_client
from ..exceptions import LeaseStoreError
from ..models.domain import Lease, LeaseState

logger = logging.getLogger(__name__)

# Receives the current lease (a free lease when the bus has no record yet).
# Returns the lease to write, None to leave the record untouched, or raises to abort.
LeaseDecision = Callable[[Lease], "Lease | None"]

UNIQUE_VIOLATION = "23505"


class LeaseStore(Protocol):
    def get(self, bus_id: str) -> Lease: ...

    def transact(self, bus_id: str, decide: LeaseDecision) -> Lease: ...


class InMemoryLeaseStore:
    """Single-process store; one lock per bus so buses never contend."""

    def __init__(self) -> None:
        self._records: dict[str, Lease] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, bus_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(bus_id)
            if lock is None:
                lock = self._locks[bus_id] = threading.Lock()
            return lock

    def get(self, bus_id: str) -> Lease:
        with self._lock_for(bus_id):
            return self._records.get(bus_id) or Lease.free(bus_id)

    def transact(self, bus_id: str, decide: LeaseDecision) -> Lease:
        with self._lock_for(bus_id):
            current = self._records.get(bus_id) or Lease.free(bus_id)
            updated = decide(current)
            if updated is None:
                return current
            updated = replace(updated, bus_id=bus_id, version=current.version + 1)
            self._records[bus_id] = updated
            return updated


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    # Columns without a time zone hold UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_lease(bus_id: str, row: dict[str, Any] | None) -> Lease:
    if not row:
        return Lease.free(bus_id)
    return Lease(
        bus_id=bus_id,
        holder_id=row.get("holder_id"),
        trip_id=row.get("trip_id"),
        state=LeaseState(row.get("state") or LeaseState.FREE.value),
        acquired_at=_parse_timestamp(row.get("acquired_at")),
        expires_at=_parse_timestamp(row.get("expires_at")),
        version=int(row.get("version") or 0),
    )


def _lease_to_row(lease: Lease, version: int) -> dict[str, Any]:
    return {
        "bus_id": lease.bus_id,
        "holder_id": lease.holder_id,
        "trip_id": lease.trip_id,
        "state": lease.state.value,
        "acquired_at": lease.acquired_at.isoformat() if lease.acquired_at else None,
        "expires_at": lease.expires_at.isoformat() if lease.expires_at else None,
        "version": version,
    }


class SupabaseLeaseStore:
    """Lease rows in Supabase guarded by an optimistic ``version`` column.

    A write only lands when the row still carries the version that was read, so
    concurrent writers on the same bus see zero affected rows and re-run their
    decision against the fresh record. First writes rely on the primary key.
    """

    def __init__(self, client: Any | None = None, table: str | None = None, max_attempts: int | None = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise LeaseStoreError("Supabase is not configured; cannot create lease store.")
        self.table = table or settings.leases_table
        self.max_attempts = max_attempts if max_attempts is not None else settings.lease_store_max_attempts

    def _read_row(self, bus_id: str) -> dict[str, Any] | None:
        try:
            response = self.client.table(self.table).select("*").eq("bus_id", bus_id).limit(1).execute()
        except Exception as exc:
            raise LeaseStoreError(f"Failed to read lease for bus {bus_id}: {exc}") from exc
        rows = response.data or []
        return rows[0] if rows else None

    def get(self, bus_id: str) -> Lease:
        return _row_to_lease(bus_id, self._read_row(bus_id))

    def transact(self, bus_id: str, decide: LeaseDecision) -> Lease:
        for attempt in range(1, self.max_attempts + 1):
            row = self._read_row(bus_id)
            current = _row_to_lease(bus_id, row)
            updated = decide(current)
            if updated is None:
                return current

            next_version = current.version + 1
            payload = _lease_to_row(replace(updated, bus_id=bus_id), next_version)
            if row is None:
                try:
                    self.client.table(self.table).insert(payload).execute()
                except APIError as exc:
                    if exc.code != UNIQUE_VIOLATION:
                        raise LeaseStoreError(f"Failed to create lease for bus {bus_id}: {exc}") from exc
                except Exception as exc:
                    raise LeaseStoreError(f"Failed to create lease for bus {bus_id}: {exc}") from exc
                else:
                    return replace(updated, bus_id=bus_id, version=next_version)
            else:
                try:
                    response = (
                        self.client.table(self.table)
                        .update(payload)
                        .eq("bus_id", bus_id)
                        .eq("version", current.version)
                        .execute()
                    )
                except Exception as exc:
                    raise LeaseStoreError(f"Failed to write lease for bus {bus_id}: {exc}") from exc
                if response.data:
                    return replace(updated, bus_id=bus_id, version=next_version)

            logger.debug(f"Lease write conflict on bus {bus_id} (attempt {attempt}/{self.max_attempts}), retrying")

        raise LeaseStoreError(
            f"Lease for bus {bus_id} kept changing; gave up after {self.max_attempts} attempts"
        )
