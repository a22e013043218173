"""
Tests for the progress stream broker
"""

import asyncio
import json

from genedash.services.progress import ProgressBroker, format_sse


def decode(frame):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


async def collect(broker, progress_id, queue):
    return [frame async for frame in broker.subscribe(progress_id, queue)]


class TestProgressBroker:

    def test_publish_without_listener_is_dropped(self):
        broker = ProgressBroker()

        broker.publish("nobody", {"type": "marker_progress", "message": "Analyzing"})
        broker.publish(None, {"type": "marker_progress", "message": "Analyzing"})
        broker.close("nobody")

        assert broker.connection_count() == 0

    def test_stream_ends_after_terminal_event(self):
        async def scenario():
            broker = ProgressBroker()
            queue = broker.open("run-1")
            broker.publish("run-1", {"type": "marker_progress", "message": "Analyzing APOE", "current": 1})
            broker.publish("run-1", {"type": "analysis_complete", "message": "done", "analysis_id": 7})
            broker.publish("run-1", {"type": "marker_progress", "message": "late"})
            frames = await collect(broker, "run-1", queue)
            return broker, frames

        broker, frames = asyncio.run(scenario())

        events = [decode(frame) for frame in frames]
        assert events[0] == {"type": "connected", "message": "Progress tracking started"}
        assert [e["type"] for e in events[1:]] == ["marker_progress", "analysis_complete"]
        assert events[2]["analysis_id"] == 7
        assert broker.connection_count() == 0

    def test_close_ends_every_stream(self):
        async def scenario():
            broker = ProgressBroker()
            first = broker.open("run-2")
            second = broker.open("run-2")
            assert broker.connection_count("run-2") == 2
            broker.publish("run-2", {"type": "batch_complete", "message": "batch 1", "batch": 1})
            broker.close("run-2")
            return broker, await collect(broker, "run-2", first), await collect(broker, "run-2", second)

        broker, first, second = asyncio.run(scenario())

        assert [decode(f)["type"] for f in first] == ["connected", "batch_complete"]
        assert [decode(f)["type"] for f in second] == ["connected", "batch_complete"]
        assert broker.connection_count() == 0

    def test_keep_alive_on_idle(self):
        async def scenario():
            broker = ProgressBroker(keepalive_seconds=0.01)
            stream = broker.subscribe("run-3")
            frames = [await stream.__anext__(), await stream.__anext__()]
            await stream.aclose()
            return broker, frames

        broker, frames = asyncio.run(scenario())

        assert decode(frames[0])["type"] == "connected"
        assert frames[1] == ": keep-alive\n\n"
        assert broker.connection_count() == 0

    def test_full_queue_drops_events(self):
        async def scenario():
            broker = ProgressBroker(queue_size=2)
            queue = broker.open("run-4")
            for index in range(5):
                broker.publish("run-4", {"type": "marker_progress", "message": "m", "current": index})
            size = queue.qsize()
            broker.close("run-4")
            return size, await collect(broker, "run-4", queue)

        size, frames = asyncio.run(scenario())

        assert size == 2
        # close() still gets through to a full queue
        assert decode(frames[-1])["type"] == "marker_progress"

    def test_format_sse(self):
        assert format_sse({"type": "connected"}) == 'data: {"type": "connected"}\n\n'
