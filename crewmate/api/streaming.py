"""
WebSocket plumbing for the live feeds.

A feed is an async generator of snapshots; each snapshot is sent as JSON
until the client disconnects, then the generator is closed so its bus
subscription is released.
"""
import asyncio
import logging
from typing import Any, AsyncIterator, Callable

from fastapi import WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from crewmate.core.exceptions import CrewMateException

logger = logging.getLogger(__name__)


async def _drain(websocket: WebSocket) -> None:
    # Client messages are ignored; this only notices the disconnect
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def stream_updates(
    websocket: WebSocket,
    updates: AsyncIterator[Any],
    render: Callable[[Any], Any] = lambda update: update,
) -> None:
    """
    Accept the socket and forward every snapshot from updates.

    If the first snapshot is refused (unknown resource, no access) the
    handshake is rejected with a policy-violation close.
    """
    try:
        first = await updates.__anext__()
    except CrewMateException as e:
        logger.info(f"Stream refused for {websocket.url.path}: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    await websocket.send_json(jsonable_encoder(render(first)))

    async def forward() -> None:
        try:
            async for update in updates:
                await websocket.send_json(jsonable_encoder(render(update)))
        except CrewMateException as e:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)

    sender = asyncio.create_task(forward())
    receiver = asyncio.create_task(_drain(websocket))
    try:
        await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sender, receiver):
            task.cancel()
        results = await asyncio.gather(sender, receiver, return_exceptions=True)
        await updates.aclose()

    for result in results:
        if isinstance(result, Exception) and not isinstance(result, (asyncio.CancelledError, WebSocketDisconnect)):
            logger.error(f"Stream {websocket.url.path} failed: {result}", exc_info=result)
