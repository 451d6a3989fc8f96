"""Telemetry store - durable, bounded staging of usage events awaiting delivery."""

from .db import DatabaseManager, get_db, init_db
from .errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidPayloadError,
    StoreUnavailableError,
    TelemetryStoreError,
)
from .models import TelemetryBatch, TelemetryEntry
from .repository import TelemetryRepository

__all__ = [
    # Database
    "DatabaseManager",
    "get_db",
    "init_db",
    # Errors
    "TelemetryStoreError",
    "EntryNotFoundError",
    "DuplicateEntryError",
    "InvalidPayloadError",
    "StoreUnavailableError",
    # Models
    "TelemetryEntry",
    "TelemetryBatch",
    # Repository
    "TelemetryRepository",
]
