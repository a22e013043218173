"""
Progress stream broker
In-memory fan-out of analysis progress events to Server-Sent Events subscribers
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Set

logger = logging.getLogger(__name__)

TERMINAL_EVENTS = ("analysis_complete", "analysis_error")

# Sentinel pushed to subscriber queues by close()
_CLOSED = None


def format_sse(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data, default=str)}\n\n"


class ProgressBroker:
    """Maps a progress id to the queues of its open connections

    Publishing never blocks and never fails the caller: an event with no
    listener is dropped, and a listener whose queue is full misses it.
    Nothing here is persisted or recovered after a restart.
    """

    def __init__(self, queue_size: int = 1000, keepalive_seconds: float = 15.0):
        self.queue_size = queue_size
        self.keepalive_seconds = keepalive_seconds
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def connection_count(self, progress_id: Optional[str] = None) -> int:
        if progress_id is not None:
            return len(self._subscribers.get(progress_id, ()))
        return sum(len(queues) for queues in self._subscribers.values())

    def open(self, progress_id: str) -> asyncio.Queue:
        """Register a listener queue for a progress id"""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(progress_id, set()).add(queue)
        logger.info(f"🔌 Progress connection opened for {progress_id} "
                    f"(total connections: {self.connection_count()})")
        return queue

    def release(self, progress_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(progress_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[progress_id]
        logger.info(f"🔌 Progress connection closed for {progress_id}")

    def publish(self, progress_id: Optional[str], event: Dict[str, Any]) -> None:
        """Send an event to every listener of progress_id"""
        if not progress_id:
            return
        queues = self._subscribers.get(progress_id)
        if not queues:
            logger.debug(f"No active connection for {progress_id}, dropping {event.get('type')}")
            return
        for queue in list(queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"⚠️ Progress queue full for {progress_id}, dropping {event.get('type')}")

    def close(self, progress_id: Optional[str]) -> None:
        """End every stream for progress_id"""
        if not progress_id:
            return
        for queue in self._subscribers.pop(progress_id, set()):
            try:
                queue.put_nowait(_CLOSED)
            except asyncio.QueueFull:
                # Make room so the listener still sees the end of stream
                queue.get_nowait()
                queue.put_nowait(_CLOSED)

    async def subscribe(self, progress_id: str, queue: Optional[asyncio.Queue] = None) -> AsyncIterator[str]:
        """Yield SSE frames for progress_id until the run finishes or the stream is closed"""
        if queue is None:
            queue = self.open(progress_id)
        try:
            yield format_sse({"type": "connected", "message": "Progress tracking started"})
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=self.keepalive_seconds)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue

                if event is _CLOSED:
                    break
                yield format_sse(event)
                if event.get("type") in TERMINAL_EVENTS:
                    break
        finally:
            self.release(progress_id, queue)
