import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from .broadcast import BroadcastEngine
from .config import RelaySettings
from .connection import Connection, ConnectionState
from .deps import get_ws_engine, get_ws_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ws"])

# how long the writer may keep flushing after the client went away
DRAIN_TIMEOUT = 1.0

_TRANSPORT_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


async def on_connection_established(
    websocket: WebSocket, engine: BroadcastEngine, queue_maxsize: int = 0
) -> Connection:
    await websocket.accept()
    connection = Connection(queue_maxsize)
    connection_id = await engine.registry.allocate_id()
    await engine.registry.register(connection_id, connection)
    logger.info("New WebSocket connection: %s", connection_id)
    return connection


async def read_loop(websocket: WebSocket, connection: Connection, engine: BroadcastEngine) -> None:
    """Rebroadcast client text frames until the stream ends."""
    while True:
        try:
            message = await websocket.receive()
        except _TRANSPORT_ERRORS as exc:
            logger.warning("Read error on connection %s: %s", connection.id, exc)
            return
        if message["type"] == "websocket.disconnect":
            return
        text = message.get("text")
        if text is None:
            # binary frames are not forwarded
            continue
        await engine.broadcast_text(text)


async def write_loop(websocket: WebSocket, connection: Connection) -> None:
    """Write queued frames to the socket in FIFO order.

    The channel is closed on exit so later sends fail instead of piling up.
    """
    try:
        while True:
            frame = await connection.channel.recv()
            if frame is None:
                return
            try:
                await websocket.send_text(frame)
            except _TRANSPORT_ERRORS as exc:
                logger.info("Write to connection %s failed: %s", connection.id, exc)
                return
    finally:
        connection.channel.close()


async def teardown(connection: Connection, engine: BroadcastEngine, writer: asyncio.Task | None = None) -> None:
    if connection.state is ConnectionState.ACTIVE:
        connection.begin_draining()
        await engine.registry.unregister(connection.id)
    connection.channel.close()
    if writer is not None:
        _, pending = await asyncio.wait({writer}, timeout=DRAIN_TIMEOUT)
        for task in pending:
            logger.info("Connection %s did not drain in time, cancelling writer", connection.id)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    connection.mark_closed()
    logger.info("WebSocket connection closed: %s", connection.id)


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    engine: BroadcastEngine = Depends(get_ws_engine),
    settings: RelaySettings = Depends(get_ws_settings),
):
    connection = await on_connection_established(websocket, engine, settings.queue_maxsize)
    writer = asyncio.create_task(write_loop(websocket, connection))
    try:
        await read_loop(websocket, connection, engine)
    finally:
        await teardown(connection, engine, writer)
