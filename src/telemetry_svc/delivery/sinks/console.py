"""Console sink for development/debugging."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any

from .base import TelemetrySink


@dataclass
class ConsoleSink(TelemetrySink):
    """
    Sink that writes batches to console (stdout/stderr) instead of a collector.

    Useful for development and debugging.
    """
    # Output destination
    stream: str = "stdout"  # stdout | stderr

    # Output format
    format: str = "json"  # json | pretty

    # Prefix for each line
    prefix: str = "[TELEMETRY] "

    async def send(self, url: str, events: list[Any]) -> None:
        out = sys.stdout if self.stream == "stdout" else sys.stderr

        for event in events:
            if self.format == "json":
                line = json.dumps(event, default=str)
            else:  # pretty
                line = json.dumps(event, indent=2, default=str)
            print(f"{self.prefix}{url} {line}", file=out)
