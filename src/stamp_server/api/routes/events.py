"""Server-Sent Events stream of committed ledger changes.

Each connection subscribes a :class:`~stamp_server.core.notifier.QueueSink`
for as long as the client stays connected.  A comment line is sent when the
stream is idle so proxies keep the connection open.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from stamp_server.core.notifier import ChangeEvent, ChangeNotifier, QueueSink
from stamp_server.services import StampServices

logger = logging.getLogger(__name__)

# Client reconnect delay announced at the start of the stream.
RETRY_MS = 10_000
KEEPALIVE_SECONDS = 15.0


def format_sse(event: ChangeEvent) -> str:
    """Render one event in ``text/event-stream`` framing."""
    data = json.dumps(event.payload, ensure_ascii=False)
    return f"id: {event.sequence}\nevent: {event.type}\ndata: {data}\n\n"


async def change_stream(
    notifier: ChangeNotifier,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for every change published while the client listens.

    The sink is subscribed when iteration starts and removed when the
    generator finishes, whether the client disconnected or the response was
    closed.
    """
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
    handle = notifier.subscribe(QueueSink(asyncio.get_running_loop(), queue))
    try:
        yield f"retry: {RETRY_MS}\n\n"
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
    finally:
        notifier.unsubscribe(handle)
        logger.debug("sse: client disconnected")


def router(services: StampServices) -> APIRouter:
    """Build the live-update router."""
    api = APIRouter()

    @api.get("/sse")
    async def stream(request: Request):
        return StreamingResponse(
            change_stream(services.notifier, request.is_disconnected),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return api
