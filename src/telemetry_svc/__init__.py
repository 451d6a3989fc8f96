"""
Telemetry Staging Service - bounded, durable queue for usage telemetry

Holds anonymous usage events from application instances until a collector
retrieves and acknowledges them:
- Capacity bound with oldest-first eviction
- Atomic checkout so no two deliverers receive the same event
- Reclamation of checkouts that were never acknowledged
- At-least-once delivery to a remote collector
"""

__version__ = "0.1.0"
