"""Wire a JourneyOrchestrator from runtime settings."""

from __future__ import annotations

import logging

from ...config import Settings, settings as default_settings
from ...db.supabase import get_supabase_client
from ...persistence.fleet import (
    InMemoryFleetDirectory,
    InMemoryJourneyState,
    SupabaseFleetDirectory,
    SupabaseJourneyState,
)
from ...persistence.lease_store import InMemoryLeaseStore, SupabaseLeaseStore
from ..lease.manager import LockManager
from ..notifications.broadcast import SupabaseBroadcastPublisher
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.push import HttpPushSender
from ..routing.geocoder import NominatimGeocoder
from ..routing.geometry import RouteGeometryBuilder
from ..routing.osrm_client import OSRMClient
from ..routing.resolver import CoordinateResolver
from ..routing.snapper import RoadSnapper
from .service import JourneyOrchestrator

logger = logging.getLogger(__name__)


def build_orchestrator(config: Settings | None = None) -> JourneyOrchestrator:
    """Build the orchestrator; optional collaborators are left out when unconfigured."""
    config = config or default_settings
    supabase = get_supabase_client()

    if supabase is not None:
        lease_store = SupabaseLeaseStore(client=supabase, table=config.leases_table, max_attempts=config.lease_store_max_attempts)
        fleet = SupabaseFleetDirectory(client=supabase)
        journey_state = SupabaseJourneyState(client=supabase)
        broadcaster = SupabaseBroadcastPublisher(config.supabase_url, config.supabase_key)
    else:
        logger.warning("Supabase not configured - leases and fleet records are kept in memory (single process only)")
        lease_store = InMemoryLeaseStore()
        fleet = InMemoryFleetDirectory()
        journey_state = InMemoryJourneyState()
        broadcaster = None

    router = None
    if config.osrm_base_url:
        router = OSRMClient(
            base_url=config.osrm_base_url,
            profile=config.osrm_profile,
            timeout=config.osrm_timeout_seconds,
            max_retries=config.osrm_max_retries,
            backoff_seconds=config.osrm_backoff_seconds,
        )
    else:
        logger.info("OSRM not configured - stops will not be snapped and no route geometry is computed")

    geocoder = None
    if config.geocoder_base_url:
        geocoder = NominatimGeocoder(
            base_url=config.geocoder_base_url,
            user_agent=config.geocoder_user_agent,
            timeout=config.geocoder_timeout_seconds,
        )

    push_sender = None
    if config.push_gateway_url:
        push_sender = HttpPushSender(config.push_gateway_url, config.push_gateway_key)

    return JourneyOrchestrator(
        lock_manager=LockManager(lease_store, default_ttl_seconds=config.lease_ttl_seconds),
        fleet=fleet,
        resolver=CoordinateResolver(
            geocoder,
            locality_hint=config.geocoder_locality_hint,
            delay_seconds=config.geocoder_delay_seconds,
            max_hint_distance_m=config.geocoder_max_hint_distance_m,
        ),
        snapper=RoadSnapper(router, radii_m=config.snap_radii_m, max_distance_m=config.snap_max_distance_m),
        geometry_builder=RouteGeometryBuilder(router, min_snap_success_rate=config.min_snap_success_rate),
        journey_state=journey_state,
        broadcaster=broadcaster,
        push_sender=push_sender,
        dispatcher=NotificationDispatcher(max_workers=config.notification_workers),
        lease_ttl_seconds=config.lease_ttl_seconds,
    )
