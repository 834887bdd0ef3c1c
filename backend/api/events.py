"""
Live updates over Server-Sent Events.
"""

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from dependencies import get_broker, get_stream_user_id
from helpers.events import EventBroker, sse_frame

router = APIRouter(prefix="/events", tags=["Events"])

PING_INTERVAL = 15


@router.get("/stream")
async def stream_events(
    request: Request,
    user_id: str = Depends(get_stream_user_id),
    broker: EventBroker = Depends(get_broker),
):
    """
    Per-user event stream.

    - Sends `connected` once the stream opens and `ping` after 15s of silence
    - Events: record_created, record_updated, record_deleted,
      analysis_completed, analysis_failed, story_completed, story_failed
    """

    async def _event_generator():
        async with broker.stream(user_id) as queue:
            yield sse_frame("connected", {})
            while not await request.is_disconnected():
                try:
                    yield await asyncio.wait_for(queue.get(), timeout=PING_INTERVAL)
                except asyncio.TimeoutError:
                    yield sse_frame("ping", {})

    return StreamingResponse(
        _event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
