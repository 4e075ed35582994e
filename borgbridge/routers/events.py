"""WebSocket event streams: per-id process output and mount exits."""

from __future__ import annotations

import asyncio
from typing import Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from borgbridge.auth import require_ws_api_key
from borgbridge.models.commands import LogEvent, MountExitEvent
from borgbridge.services.output_bus import output_bus
from borgbridge.utils.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["events"])

# per connection; events beyond this are dropped for a client that falls behind
QUEUE_SIZE = 1000


def _enqueuer(queue: asyncio.Queue) -> Callable[[BaseModel], None]:
    """Bus listener that drops events once *queue* is full."""

    def put(event: BaseModel) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            log.debug("ws.event_dropped", size=queue.qsize())

    return put


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Send queued events until the client disconnects."""

    async def sender() -> None:
        while True:
            event: BaseModel = await queue.get()
            await websocket.send_json(event.model_dump(mode="json"))

    async def receiver() -> None:
        # clients send nothing; this only notices the disconnect
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    tasks = {asyncio.create_task(sender()), asyncio.create_task(receiver())}
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    for task in done:
        if task.cancelled():
            continue
        exc = task.exception()
        if exc is not None and not isinstance(exc, WebSocketDisconnect):
            log.debug("ws.closed", error=str(exc))


@router.websocket("/ws/output/{routing_id}")
async def output_stream(
    websocket: WebSocket,
    routing_id: str,
    _: str = Depends(require_ws_api_key),
) -> None:
    """Stream ``{id, text, stream}`` frames for one routing id."""
    queue: asyncio.Queue[LogEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
    with output_bus.listening(routing_id, _enqueuer(queue)):
        await websocket.accept()
        await _forward(websocket, queue)


@router.websocket("/ws/mount-exits")
async def mount_exit_stream(
    websocket: WebSocket,
    _: str = Depends(require_ws_api_key),
) -> None:
    """Stream ``{mount_id, exit_code}`` frames, one per mount lifecycle."""
    queue: asyncio.Queue[MountExitEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
    listener = _enqueuer(queue)
    output_bus.subscribe_exits(listener)
    try:
        await websocket.accept()
        await _forward(websocket, queue)
    finally:
        output_bus.unsubscribe_exits(listener)
