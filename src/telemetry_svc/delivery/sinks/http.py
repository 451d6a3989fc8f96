"""HTTP sink - posts batches to the remote collector."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .base import TelemetrySink


logger = logging.getLogger(__name__)


@dataclass
class HttpSink(TelemetrySink):
    """
    Sink that POSTs each batch to the collector url as JSON.

    Body: {"events": [...]}. Any non-2xx response raises, so the batch
    is not acknowledged.

    Config:
        timeout_seconds: Per-request timeout
        headers: Extra request headers (e.g. an API key)
    """
    timeout_seconds: float = 10.0
    headers: dict[str, str] = field(default_factory=dict)

    # Internal state
    _client: httpx.AsyncClient | None = field(default=None, init=False)

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers=self.headers,
            )
            logger.info(f"HTTP telemetry sink started (timeout={self.timeout_seconds}s)")

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, url: str, events: list[Any]) -> None:
        if self._client is None:
            await self.start()

        response = await self._client.post(url, json={"events": events})
        response.raise_for_status()
        logger.debug(f"Posted {len(events)} events to {url} ({response.status_code})")
