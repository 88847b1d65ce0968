"""
Status Event Stream

WebSocket pushing a status snapshot after every analysis cycle and
every connection state transition.
"""

import asyncio

from fastapi import APIRouter, WebSocket
from loguru import logger

from route_engine import StatusSnapshot

from .network import status_response


router = APIRouter()

# Slow clients only ever see the most recent snapshots
EVENT_QUEUE_SIZE = 16


async def _wait_for_close(websocket: WebSocket) -> None:
    """Consume client frames until the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/events")
async def status_events(websocket: WebSocket):
    """Send the current status, then every published update."""
    await websocket.accept()
    service = websocket.app.state.service
    queue: "asyncio.Queue[StatusSnapshot]" = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)

    def push(snapshot: StatusSnapshot) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    unsubscribe = service.subscribe(push)
    closed = asyncio.create_task(_wait_for_close(websocket))
    logger.debug("Status subscriber connected")

    try:
        await websocket.send_json(status_response(service.get_status()).model_dump())
        while True:
            next_snapshot = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {next_snapshot, closed},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if closed in done:
                next_snapshot.cancel()
                break
            await websocket.send_json(status_response(next_snapshot.result()).model_dump())
    finally:
        closed.cancel()
        unsubscribe()
        logger.debug("Status subscriber disconnected")
