#!/usr/bin/env python3
"""Report which external services the lease API will use with the current environment."""

from pathlib import Path

ENV_TEMPLATE = """# Supabase (lease rows, fleet records, realtime broadcast). Leave unset for in-memory mode.
BUSLEASE_SUPABASE_URL=https://your-project-id.supabase.co
BUSLEASE_SUPABASE_KEY=your-service-role-key-here

# Lease timing
BUSLEASE_LEASE_TTL_SECONDS=300
BUSLEASE_HEARTBEAT_INTERVAL_SECONDS=5

# OSRM road snapping and route geometry (optional)
BUSLEASE_OSRM_BASE_URL=http://localhost:5000
BUSLEASE_SNAP_RADII_M=350,700

# Geocoding of stops without stored coordinates
BUSLEASE_GEOCODER_LOCALITY_HINT=

# Push gateway for trip notifications (optional)
# BUSLEASE_PUSH_GATEWAY_URL=
# BUSLEASE_PUSH_GATEWAY_KEY=
"""


def _mask(value: str) -> str:
    return value if len(value) <= 20 else value[:20] + "..." + value[-6:]


def main() -> int:
    env_file = Path(__file__).parent / ".env"
    if not env_file.exists():
        env_file.write_text(ENV_TEMPLATE, encoding="utf-8")
        print(f"Created template .env at {env_file}; fill it in and run again.")
        return 1

    from buslease.config import settings
    from buslease.services.routing.osrm_client import check_health

    print("=" * 60)
    print("Bus lease API configuration")
    print("=" * 60)
    if settings.supabase_url and settings.supabase_key:
        print(f"✅ Supabase: {settings.supabase_url} (key {_mask(settings.supabase_key)})")
        print(f"   Lease table: {settings.leases_table}")
    else:
        print("⚠️  Supabase not configured: leases are held in memory, single process only")

    print(f"   Lease TTL {settings.lease_ttl_seconds}s, heartbeat every {settings.heartbeat_interval_seconds}s")

    if settings.osrm_base_url:
        healthy = check_health()
        print(f"{'✅' if healthy else '❌'} OSRM: {settings.osrm_base_url} ({settings.osrm_profile})")
    else:
        print("⚠️  OSRM not configured: stops are not snapped, no route geometry")

    print(f"   Geocoder: {settings.geocoder_base_url or 'disabled'}")
    print(f"   Push gateway: {settings.push_gateway_url or 'disabled'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
