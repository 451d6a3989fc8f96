"""Telemetry store types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# Stored timestamps are fixed-width UTC strings so they sort lexicographically
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """Default clock for the store."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as a stored timestamp."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class TelemetryEntry:
    """
    A single staged telemetry event.

    The payload is whatever JSON-compatible value the producer handed in;
    the store never looks inside it.
    """
    uuid: str
    payload: Any
    available: bool
    last_changed: datetime
    creation_date: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "uuid": self.uuid,
            "payload": self.payload,
            "available": self.available,
            "last_changed": self.last_changed.isoformat(),
            "creation_date": self.creation_date.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class TelemetryBatch:
    """Entries checked out for delivery, plus where to send them."""
    url: str
    events: list[Any] = field(default_factory=list)

    # Checked-out ids, in the same order as events
    uuids: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.uuids

    def __len__(self) -> int:
        return len(self.uuids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "events": self.events,
            "uuids": self.uuids,
        }
