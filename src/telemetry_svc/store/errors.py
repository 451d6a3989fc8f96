"""Errors raised by the telemetry store."""

from __future__ import annotations


class TelemetryStoreError(Exception):
    """Base class for telemetry store failures."""
    pass


class EntryNotFoundError(TelemetryStoreError):
    """Raised when a single-entry lookup finds no matching uuid."""

    def __init__(self, uuid: str):
        super().__init__(f"Telemetry entry not found: {uuid}")
        self.uuid = uuid


class DuplicateEntryError(TelemetryStoreError):
    """Raised when an entry is inserted with a uuid that already exists."""
    pass


class StoreUnavailableError(TelemetryStoreError):
    """Raised when the backing database cannot be read or written."""
    pass


class InvalidPayloadError(TelemetryStoreError, ValueError):
    """Raised when a payload cannot be encoded as strict JSON (NaN, Infinity)."""
    pass
