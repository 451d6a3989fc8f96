"""Delivery - background workers that ship staged telemetry to the collector."""

from .sinks import ConsoleSink, FileSink, HttpSink, TelemetrySink
from .worker import DeliveryWorker, ReclaimWorker

__all__ = [
    "DeliveryWorker",
    "ReclaimWorker",
    "TelemetrySink",
    "ConsoleSink",
    "FileSink",
    "HttpSink",
]
