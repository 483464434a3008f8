"""Realtime broadcast of journey events over Supabase Realtime."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


class BroadcastPublisher(Protocol):
    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None: ...


def trip_channel(bus_id: str) -> str:
    return f"trip-status-{bus_id}"


class SupabaseBroadcastPublisher:
    """Sends broadcast messages through the Realtime REST endpoint; no acknowledgement is awaited."""

    def __init__(
        self,
        supabase_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        url = supabase_url or settings.supabase_url
        key = api_key or settings.supabase_key
        if not url or not key:
            raise ValueError("Supabase is not configured; cannot broadcast.")
        self.endpoint = f"{url.rstrip('/')}/realtime/v1/api/broadcast"
        self.api_key = key
        self.timeout = timeout
        self.transport = transport

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        body = {"messages": [{"topic": channel, "event": event, "payload": payload}]}
        headers = {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(self.endpoint, json=body, headers=headers)
            response.raise_for_status()
        logger.debug(f"Broadcast '{event}' on {channel}")
