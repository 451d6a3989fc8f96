"""File-based sink for telemetry batches."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .base import TelemetrySink


@dataclass
class FileSink(TelemetrySink):
    """
    Sink that appends delivered events to a file (JSONL format).

    Each event is written as a single JSON line tagged with the collector
    url and delivery time, for offline shipping or inspection.
    """
    path: str = "./telemetry/outbox.jsonl"
    encoding: str = "utf-8"

    # Internal state
    _file: object = field(default=None, init=False)

    async def start(self) -> None:
        # Ensure directory exists
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding=self.encoding)

    async def stop(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    async def send(self, url: str, events: list[Any]) -> None:
        if not self._file:
            await self.start()

        delivered_at = datetime.now(timezone.utc).isoformat()
        for event in events:
            line = json.dumps({"url": url, "delivered_at": delivered_at, "event": event}, default=str)
            self._file.write(line + "\n")

        self._file.flush()
