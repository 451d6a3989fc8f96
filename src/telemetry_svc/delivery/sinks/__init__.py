"""Delivery sinks - where checked-out telemetry batches are sent."""

from .base import TelemetrySink
from .console import ConsoleSink
from .file import FileSink
from .http import HttpSink

__all__ = [
    "TelemetrySink",
    "ConsoleSink",
    "FileSink",
    "HttpSink",
]
