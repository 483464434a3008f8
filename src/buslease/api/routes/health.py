"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_osrm_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.osrm_client import check_health as osrm_health_check
    return osrm_health_check


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm() -> dict:
    """Check OSRM service health. Snapping and geometry degrade gracefully without it."""
    if not settings.osrm_base_url:
        return {"service": "osrm", "configured": False, "healthy": False}
    try:
        osrm_health_check = _get_osrm_health_check()
        return {"service": "osrm", "configured": True, "healthy": osrm_health_check()}
    except Exception as e:
        return {"service": "osrm", "configured": True, "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and lease table availability."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set BUSLEASE_SUPABASE_URL and BUSLEASE_SUPABASE_KEY environment variables.",
        }

    try:
        response = supabase.table(settings.leases_table).select("bus_id", count="exact").limit(1).execute()
        return {
            "configured": True,
            "connected": True,
            "leases_count": response.count or 0,
            "message": f"Database connected. Lease table '{settings.leases_table}' is reachable.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
