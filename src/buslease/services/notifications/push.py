"""Push notifications to student devices through an HTTP gateway."""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


class PushSender(Protocol):
    def send(self, tokens: Sequence[str], title: str, body: str, data: dict[str, str]) -> None: ...


class HttpPushSender:
    def __init__(
        self,
        gateway_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.gateway_url = gateway_url or settings.push_gateway_url
        if not self.gateway_url:
            raise ValueError("Push gateway URL is not configured.")
        self.api_key = api_key or settings.push_gateway_key
        self.timeout = timeout
        self.transport = transport

    def send(self, tokens: Sequence[str], title: str, body: str, data: dict[str, str]) -> None:
        if not tokens:
            return
        payload: dict[str, Any] = {
            "tokens": list(tokens),
            "notification": {"title": title, "body": body},
            "data": data,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(self.gateway_url, json=payload, headers=headers)
            response.raise_for_status()
        logger.info(f"Push notification '{title}' sent to {len(tokens)} devices")
