"""FastAPI application - Telemetry Staging Service.

Producers POST usage events here; they are held in a bounded SQLite
queue until the delivery worker (or an external collector polling
/events/batch) checks them out and acknowledges them.
"""

from __future__ import annotations

import asyncio
import logging
import uuid as uuid_lib
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Config, load_config
from .delivery.sinks.base import TelemetrySink
from .delivery.sinks.console import ConsoleSink
from .delivery.sinks.file import FileSink
from .delivery.sinks.http import HttpSink
from .delivery.worker import DeliveryWorker, ReclaimWorker
from .service import TelemetryService
from .store.db import DatabaseManager
from .store.errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidPayloadError,
    StoreUnavailableError,
)
from .store.repository import TelemetryRepository


logger = logging.getLogger(__name__)


# Request/response models
class InsertRequest(BaseModel):
    """A usage event from a producer. uuid is generated when omitted."""
    uuid: str | None = Field(default=None, min_length=1)
    payload: Any


class InsertResponse(BaseModel):
    uuid: str


class BatchResponse(BaseModel):
    """Checked-out events and where to deliver them."""
    url: str
    events: list[Any]
    uuids: list[str]


class AcknowledgeRequest(BaseModel):
    uuids: list[str]


class AcknowledgeResponse(BaseModel):
    acknowledged: int


class ReclaimResponse(BaseModel):
    reclaimed: int


class EntryResponse(BaseModel):
    uuid: str
    payload: Any
    available: bool
    last_changed: str
    creation_date: str


class HealthResponse(BaseModel):
    status: str
    store: dict[str, Any]
    delivery: dict[str, Any]
    reclaim: dict[str, Any]


def create_sink(config: Config) -> TelemetrySink:
    """Create the delivery sink based on config."""
    sink_type = config.delivery.sink_type
    sink_config = config.delivery.sink_config

    if sink_type == "http":
        return HttpSink(**sink_config)
    elif sink_type == "file":
        return FileSink(**sink_config)
    return ConsoleSink(**sink_config)


def create_app(config: Config | None = None) -> FastAPI:
    """Build the application. Config is loaded from $TELEMETRY_CONFIG when not given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        cfg = config or load_config()
        logger.info("Starting telemetry staging service...")

        db = DatabaseManager(cfg.telemetry.db_path, cfg.telemetry.busy_timeout_seconds)
        try:
            repository = TelemetryRepository(db.connect(), cfg.telemetry)
            service = TelemetryService(repository)

            sink = create_sink(cfg)
            delivery = DeliveryWorker(service, sink, cfg.delivery.delivery_interval_seconds)
            reclaim = ReclaimWorker(service, cfg.delivery.reclaim_interval_seconds)

            tasks: list[asyncio.Task] = []
            if cfg.delivery.enabled:
                await sink.start()
                tasks.append(asyncio.create_task(delivery.timer_loop()))
                tasks.append(asyncio.create_task(reclaim.timer_loop()))

            app.state.config = cfg
            app.state.service = service
            app.state.delivery = delivery
            app.state.reclaim = reclaim

            logger.info("Telemetry staging service started")

            yield

            # Shutdown
            logger.info("Shutting down telemetry staging service...")

            for task in tasks:
                task.cancel()
            for task in tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if cfg.delivery.enabled:
                await delivery.stop()
                await reclaim.stop()
                await sink.stop()
        finally:
            db.close()

        logger.info("Telemetry staging service stopped")

    app = FastAPI(
        title="Telemetry Staging Service",
        description="Durable, bounded staging queue for anonymous usage telemetry",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(EntryNotFoundError)
    async def not_found_error_handler(request: Request, exc: EntryNotFoundError):
        return JSONResponse(
            status_code=404,
            content={"error": "Not found", "detail": str(exc)},
        )

    @app.exception_handler(DuplicateEntryError)
    async def duplicate_error_handler(request: Request, exc: DuplicateEntryError):
        return JSONResponse(
            status_code=409,
            content={"error": "Duplicate entry", "detail": str(exc)},
        )

    @app.exception_handler(InvalidPayloadError)
    async def invalid_payload_handler(request: Request, exc: InvalidPayloadError):
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid payload", "detail": str(exc)},
        )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"Telemetry store unavailable: {exc}")
        return JSONResponse(
            status_code=503,
            content={"error": "Store unavailable", "detail": str(exc)},
        )

    # Store calls block on SQLite, so the handlers are plain functions and
    # run in FastAPI's threadpool.

    @app.post("/events", response_model=InsertResponse, status_code=201)
    def insert_event(body: InsertRequest, request: Request):
        """Stage a usage event."""
        event_id = body.uuid or str(uuid_lib.uuid4())
        request.app.state.service.insert(event_id, body.payload)
        return InsertResponse(uuid=event_id)

    @app.post("/events/batch", response_model=BatchResponse)
    def fetch_batch(request: Request):
        """Check out the next batch. Entries stay unavailable until acknowledged or reclaimed."""
        batch = request.app.state.service.fetch_batch()
        return BatchResponse(**batch.to_dict())

    @app.post("/events/ack", response_model=AcknowledgeResponse)
    def acknowledge(body: AcknowledgeRequest, request: Request):
        """Remove delivered events."""
        return AcknowledgeResponse(acknowledged=request.app.state.service.acknowledge(body.uuids))

    @app.post("/events/reclaim", response_model=ReclaimResponse)
    def reclaim(request: Request):
        """Return stale checkouts to the available pool."""
        return ReclaimResponse(reclaimed=request.app.state.service.reclaim_stale())

    @app.get("/events/{uuid}", response_model=EntryResponse)
    def get_event(uuid: str, request: Request):
        """Get a staged event."""
        return EntryResponse(**request.app.state.service.get_entry(uuid).to_dict())

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request):
        """Health check endpoint."""
        state = request.app.state
        return HealthResponse(
            status="healthy",
            store=state.service.stats,
            delivery=state.delivery.stats,
            reclaim=state.reclaim.stats,
        )

    return app


app = create_app()


def run():
    """Run the service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    uvicorn.run(
        "telemetry_svc.main:app",
        host=config.server.host,
        port=config.server.port,
    )


if __name__ == "__main__":
    run()
