"""Tests for delivery sinks and background workers."""

import asyncio
import json

import httpx
import pytest

from telemetry_svc.delivery.sinks import ConsoleSink, FileSink, HttpSink, TelemetrySink
from telemetry_svc.delivery.worker import DeliveryWorker, ReclaimWorker


class RecordingSink(TelemetrySink):
    def __init__(self):
        self.batches = []

    async def send(self, url, events):
        self.batches.append((url, list(events)))


class FailingSink(TelemetrySink):
    async def send(self, url, events):
        raise httpx.ConnectError("collector unreachable")


class TestDeliveryWorker:
    @pytest.mark.asyncio
    async def test_deliver_once_acknowledges(self, service):
        service.insert("A", {"k": 1})
        service.insert("B", {"k": 2})
        sink = RecordingSink()
        worker = DeliveryWorker(service, sink)

        delivered = await worker.deliver_once()

        assert delivered == 2
        assert sink.batches == [("https://telemetry.botpress.dev", [{"k": 1}, {"k": 2}])]
        assert service.repository.count() == 0
        assert worker.stats["batches_sent"] == 1
        assert worker.stats["events_sent"] == 2

    @pytest.mark.asyncio
    async def test_nothing_to_deliver(self, service):
        sink = RecordingSink()
        worker = DeliveryWorker(service, sink)

        assert await worker.deliver_once() == 0
        assert sink.batches == []

    @pytest.mark.asyncio
    async def test_failed_send_leaves_entries_checked_out(self, service, clock):
        service.insert("A", {"k": 1})
        worker = DeliveryWorker(service, FailingSink())

        assert await worker.deliver_once() == 0
        assert worker.stats["send_errors"] == 1

        entry = service.get_entry("A")
        assert entry.available is False

        # Reclamation makes it deliverable again
        clock.advance(minutes=6)
        assert service.reclaim_stale() == 1

        sink = RecordingSink()
        retry = DeliveryWorker(service, sink)
        assert await retry.deliver_once() == 1
        assert sink.batches[0][1] == [{"k": 1}]

    @pytest.mark.asyncio
    async def test_timer_loop_cancel(self, service):
        service.insert("A", {})
        sink = RecordingSink()
        worker = DeliveryWorker(service, sink, interval_seconds=0.01)

        task = asyncio.create_task(worker.timer_loop())
        await asyncio.sleep(0.2)
        task.cancel()
        await task

        assert len(sink.batches) == 1
        assert service.repository.count() == 0

    @pytest.mark.asyncio
    async def test_rejected_payload_never_blocks_http_delivery(self, service):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(202)

        service.insert("good", {"k": 1})
        with pytest.raises(ValueError):
            service.insert("bad", {"x": float("nan")})

        sink = HttpSink()
        sink._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        worker = DeliveryWorker(service, sink)

        assert await worker.deliver_once() == 1
        await sink.stop()

        assert requests == [{"events": [{"k": 1}]}]
        assert service.repository.count() == 0
        assert worker.stats["send_errors"] == 0


class TestReclaimWorker:
    @pytest.mark.asyncio
    async def test_reclaim_once(self, service, clock):
        service.insert("A", {})
        service.fetch_batch()
        clock.advance(minutes=10)
        worker = ReclaimWorker(service)

        assert await worker.reclaim_once() == 1
        assert worker.stats == {"runs": 1, "reclaimed": 1, "errors": 0}

    @pytest.mark.asyncio
    async def test_timer_loop_stop(self, service):
        worker = ReclaimWorker(service, interval_seconds=0.01)

        task = asyncio.create_task(worker.timer_loop())
        await asyncio.sleep(0.05)
        await worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert worker.stats["runs"] >= 1


class TestSinks:
    @pytest.mark.asyncio
    async def test_http_sink_posts_batch(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202)

        sink = HttpSink()
        sink._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        await sink.send("https://collector.example.test/events", [{"k": 1}])
        await sink.stop()

        assert len(requests) == 1
        assert str(requests[0].url) == "https://collector.example.test/events"
        assert json.loads(requests[0].content) == {"events": [{"k": 1}]}

    @pytest.mark.asyncio
    async def test_http_sink_raises_on_error_status(self):
        sink = HttpSink()
        sink._client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )

        with pytest.raises(httpx.HTTPStatusError):
            await sink.send("https://collector.example.test/events", [{"k": 1}])
        await sink.stop()

    @pytest.mark.asyncio
    async def test_file_sink(self, tmp_path):
        path = tmp_path / "out" / "events.jsonl"
        sink = FileSink(path=str(path))

        await sink.send("https://collector.example.test", [{"k": 1}, {"k": 2}])
        await sink.stop()

        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["event"] for line in lines] == [{"k": 1}, {"k": 2}]
        assert lines[0]["url"] == "https://collector.example.test"

    @pytest.mark.asyncio
    async def test_console_sink(self, capsys):
        await ConsoleSink().send("https://collector.example.test", [{"k": 1}])

        out = capsys.readouterr().out
        assert out.startswith("[TELEMETRY] https://collector.example.test")
        assert '{"k": 1}' in out
