"""Journey endpoints: start, heartbeat, end and lease inspection."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...config import settings
from ...exceptions import (
    LeaseError,
    LeaseExpired,
    LeaseStoreError,
    LockHeldByOther,
    NotAuthorized,
    ResourceNotFound,
)
from ...schemas.journey import (
    EndJourneyResponse,
    HeartbeatResponse,
    LeaseModel,
    LeaseStatusModel,
    SnappedStopModel,
    StartJourneyRequest,
    StartJourneyResponse,
    TripRequest,
)
from ...services.journey.service import JourneyOrchestrator
from ..dependencies import get_orchestrator

router = APIRouter(prefix="/journeys", tags=["journeys"])


def _lease_error(exc: LeaseError) -> HTTPException:
    detail: dict = {"error": str(exc), "errorCode": exc.error_code, "busId": exc.bus_id}
    if isinstance(exc, LockHeldByOther):
        detail["holderId"] = exc.holder_id
    status_code = status.HTTP_410_GONE if isinstance(exc, LeaseExpired) else status.HTTP_409_CONFLICT
    return HTTPException(status_code=status_code, detail=detail)


def _store_error(exc: LeaseStoreError) -> HTTPException:
    logging.error(f"Lease store unavailable: {exc}")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Lease store unavailable: {exc}")


@router.post("/start", response_model=StartJourneyResponse, status_code=status.HTTP_200_OK)
def start_journey(
    payload: StartJourneyRequest,
    orchestrator: JourneyOrchestrator = Depends(get_orchestrator),
) -> StartJourneyResponse:
    try:
        result = orchestrator.start_journey(payload.actor_id, payload.bus_id, payload.route_id)
    except NotAuthorized as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ResourceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except LeaseError as exc:
        raise _lease_error(exc) from exc
    except LeaseStoreError as exc:
        raise _store_error(exc) from exc
    except Exception as exc:
        logging.exception(f"Error starting journey: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start journey: {str(exc)}",
        ) from exc

    return StartJourneyResponse(
        message="Trip already active" if result.already_active else "Journey started successfully",
        already_active=result.already_active,
        trip_id=result.trip_id,
        bus_id=result.bus_id,
        route_id=result.route_id,
        route_geometry=[[lat, lng] for lat, lng in result.route_geometry] if result.route_geometry else None,
        route_geometry_source=result.geometry_source.value,
        snapped_stops=[SnappedStopModel.from_domain(stop) for stop in result.snapped_stops],
        snap_success_rate=result.snap_success_rate,
        timestamp=result.started_at,
        processing_time_ms=result.processing_time_ms,
    )


@router.post("/heartbeat", response_model=HeartbeatResponse, status_code=status.HTTP_200_OK)
def heartbeat(
    payload: TripRequest,
    orchestrator: JourneyOrchestrator = Depends(get_orchestrator),
) -> HeartbeatResponse:
    try:
        lease = orchestrator.heartbeat(payload.actor_id, payload.bus_id, payload.trip_id)
    except LeaseError as exc:
        raise _lease_error(exc) from exc
    except LeaseStoreError as exc:
        raise _store_error(exc) from exc
    return HeartbeatResponse(
        lease=LeaseModel.from_lease(lease),
        next_heartbeat_seconds=settings.heartbeat_interval_seconds,
    )


@router.post("/end", response_model=EndJourneyResponse, status_code=status.HTTP_200_OK)
def end_journey(
    payload: TripRequest,
    orchestrator: JourneyOrchestrator = Depends(get_orchestrator),
) -> EndJourneyResponse:
    try:
        lease = orchestrator.end_journey(payload.actor_id, payload.bus_id, payload.trip_id)
    except NotAuthorized as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ResourceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except LeaseError as exc:
        raise _lease_error(exc) from exc
    return EndJourneyResponse(
        message=f"Trip {payload.trip_id} ended",
        lease=LeaseModel.from_lease(lease),
    )


@router.get("/{bus_id}/lease", response_model=LeaseStatusModel, status_code=status.HTTP_200_OK)
def lease_status(
    bus_id: str,
    orchestrator: JourneyOrchestrator = Depends(get_orchestrator),
) -> LeaseStatusModel:
    try:
        return LeaseStatusModel.from_status(orchestrator.lease_status(bus_id))
    except LeaseStoreError as exc:
        raise _store_error(exc) from exc
