"""Place-name geocoding against a Nominatim-compatible search API."""

from __future__ import annotations

import logging

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.geocoder_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Geocoder base URL is not configured.")
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.timeout = timeout if timeout is not None else settings.geocoder_timeout_seconds
        self.transport = transport

    def geocode(self, name: str, locality_hint: str = "") -> tuple[float, float] | None:
        """Look up ``name`` (qualified by ``locality_hint``) and return its (lat, lng).

        Returns None when the search has no result. Transport errors and
        timeouts propagate to the caller.
        """
        query = f"{name}, {locality_hint}" if locality_hint else name
        params = {"q": query, "format": "json", "limit": 1}
        headers = {"User-Agent": self.user_agent}

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.get(f"{self.base_url}/search", params=params, headers=headers)
            response.raise_for_status()
            results = response.json()

        if not results:
            logger.warning(f"No geocoding results for: {query}")
            return None
        first = results[0]
        return float(first["lat"]), float(first["lon"])
