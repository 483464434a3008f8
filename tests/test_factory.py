import pytest

from buslease.config import Settings
from buslease.persistence.lease_store import InMemoryLeaseStore
from buslease.services.journey import factory
from buslease.services.routing.geocoder import NominatimGeocoder
from buslease.services.routing.osrm_client import OSRMClient


@pytest.fixture(autouse=True)
def no_supabase(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(factory, "get_supabase_client", lambda: None)


def test_settings_parse_comma_separated_values():
    config = Settings(snap_radii_m="200, 400", frontend_allowed_origins="https://a.test,https://b.test")

    assert config.snap_radii_m == (200, 400)
    assert config.frontend_allowed_origins == ("https://a.test", "https://b.test")


def test_build_orchestrator_without_external_services():
    config = Settings(osrm_base_url=None, geocoder_base_url=None, push_gateway_url=None, lease_ttl_seconds=120)

    orchestrator = factory.build_orchestrator(config)

    assert isinstance(orchestrator.lock_manager.store, InMemoryLeaseStore)
    assert orchestrator.snapper.router is None
    assert orchestrator.resolver.geocoder is None
    assert orchestrator.broadcaster is None
    assert orchestrator.push_sender is None
    assert orchestrator.lease_ttl_seconds == 120
    orchestrator.dispatcher.shutdown()


def test_build_orchestrator_wires_configured_services():
    config = Settings(
        osrm_base_url="http://osrm.test",
        geocoder_base_url="https://nominatim.test",
        snap_radii_m=(300, 600),
        snap_max_distance_m=400,
    )

    orchestrator = factory.build_orchestrator(config)

    assert isinstance(orchestrator.snapper.router, OSRMClient)
    assert orchestrator.geometry_builder.router is orchestrator.snapper.router
    assert orchestrator.snapper.radii_m == (300, 600)
    assert orchestrator.snapper.max_distance_m == 400
    assert isinstance(orchestrator.resolver.geocoder, NominatimGeocoder)
    orchestrator.dispatcher.shutdown()
