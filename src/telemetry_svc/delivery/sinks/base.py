"""Base sink interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TelemetrySink(ABC):
    """
    Abstract base class for delivery sinks.

    Sinks receive a checked-out batch and hand it to the collector.
    Returning normally means the collector accepted the batch and the
    entries may be acknowledged; raising leaves them checked out until
    reclamation makes them available again.
    """

    @abstractmethod
    async def send(self, url: str, events: list[Any]) -> None:
        """
        Send a batch of event payloads to the collector at url.

        Should be idempotent if possible (batches can be redelivered).
        """
        ...

    async def start(self) -> None:
        """Initialize the sink (called on startup)."""
        pass

    async def stop(self) -> None:
        """Clean up the sink (called on shutdown)."""
        pass
