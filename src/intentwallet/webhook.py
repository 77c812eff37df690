"""Batch delivery of committed notifications to an HTTP webhook."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .errors import WebhookDeliveryError
from .events import Event

logger = logging.getLogger(__name__)


class WebhookSink:
    """Collects committed events and POSTs them in one JSON body on ``flush``."""

    def __init__(self, url: str, timeout_seconds: float = 5.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._buffer: list[Event] = []

    def record(self, event: Event) -> None:
        self._buffer.append(event)

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def flush(self) -> int:
        if not self._buffer:
            return 0
        body = {
            "event": "intent_wallet_notifications",
            "count": len(self._buffer),
            "events": [e.to_dict() for e in self._buffer],
        }
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=body, timeout=self.timeout_seconds)
            else:
                response = httpx.post(self.url, json=body, timeout=self.timeout_seconds)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise WebhookDeliveryError(self.url, str(exc)) from exc

        delivered = len(self._buffer)
        self._buffer.clear()
        logger.info("Delivered %d notification(s) to %s", delivered, self.url)
        return delivered
