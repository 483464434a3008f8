"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="BUSLEASE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Bus Journey Lease API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    leases_table: str = Field(default="bus_leases", description="Table holding one lease row per bus.")

    # Lease timing
    lease_ttl_seconds: int = Field(default=300, ge=1)
    heartbeat_interval_seconds: int = Field(default=5, ge=1)
    lease_store_max_attempts: int = Field(default=5, ge=1)

    # Routing
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile used for nearest-road matching and route geometry.",
    )
    osrm_timeout_seconds: float = Field(default=10.0, gt=0.0)
    osrm_max_retries: int = Field(default=0, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)
    snap_radii_m: tuple[int, ...] = Field(
        default=(350, 700),
        description="Nearest-road search radii in metres, tried in order.",
    )
    snap_max_distance_m: float = Field(default=500.0, gt=0.0)
    min_snap_success_rate: float = Field(default=50.0, ge=0.0, le=100.0)

    # Geocoding
    geocoder_base_url: Optional[str] = Field(
        default="https://nominatim.openstreetmap.org",
        description="Nominatim-compatible search endpoint. Unset to disable geocoding.",
    )
    geocoder_user_agent: str = "buslease/0.1"
    geocoder_locality_hint: str = Field(default="", description="Appended to stop names when geocoding.")
    geocoder_timeout_seconds: float = Field(default=5.0, gt=0.0)
    geocoder_delay_seconds: float = Field(default=0.2, ge=0.0)
    geocoder_max_hint_distance_m: float = Field(
        default=5000.0,
        gt=0.0,
        description="Geocoded stops farther than this from their partial stored coordinate stay unresolved.",
    )

    # Notifications
    push_gateway_url: Optional[str] = Field(
        default=None,
        description="HTTP endpoint accepting push notification batches. Unset to disable push.",
    )
    push_gateway_key: Optional[str] = None
    notification_workers: int = Field(default=4, ge=1)

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return tuple()

    @field_validator("snap_radii_m", mode="before")
    @classmethod
    def _parse_int_tuple_from_env(cls, value: Any) -> tuple[int, ...]:
        """Parse integer tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(int(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(int(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            return tuple(int(item.strip()) for item in value.split(",") if item.strip())
        return tuple()


settings = Settings()
