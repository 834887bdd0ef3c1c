"""
Per-user live updates for the SSE stream.

Routers and pipeline jobs publish record changes; every open stream owns one
bounded queue. A client that stops reading loses messages instead of
stalling the publisher.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Set

logger = logging.getLogger(__name__)

STREAM_BUFFER = 100


def sse_frame(event: str, data: Dict[str, Any]) -> str:
    payload = json.dumps(data, ensure_ascii=False, default=str)
    return f"event: {event}\ndata: {payload}\n\n"


class EventBroker:
    def __init__(self, buffer: int = STREAM_BUFFER) -> None:
        self._buffer = buffer
        self._streams: Dict[str, Set[asyncio.Queue]] = {}

    @asynccontextmanager
    async def stream(self, user_id: str) -> AsyncIterator[asyncio.Queue]:
        """Attach a queue for one connected client; leaving the block detaches it."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._buffer)
        self._streams.setdefault(user_id, set()).add(queue)
        logger.info(f"[Events] stream opened for {user_id}")
        try:
            yield queue
        finally:
            streams = self._streams.get(user_id)
            if streams is not None:
                streams.discard(queue)
                if not streams:
                    del self._streams[user_id]
            logger.info(f"[Events] stream closed for {user_id}")

    async def publish(self, user_id: str, event: str, data: Dict[str, Any]) -> None:
        streams = self._streams.get(user_id)
        if not streams:
            return
        frame = sse_frame(event, data)
        for queue in list(streams):
            try:
                queue.put_nowait(frame)
            except asyncio.QueueFull:
                logger.warning(f"[Events] stream for {user_id} is full, dropped {event}")


broker = EventBroker()
