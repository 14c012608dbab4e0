"""A single live client and its outbound delivery channel."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .errors import ChannelClosed, ChannelFull, InvalidTransition

logger = logging.getLogger(__name__)

_CLOSED = object()


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.CONNECTING: {ConnectionState.ACTIVE, ConnectionState.CLOSED},
    ConnectionState.ACTIVE: {ConnectionState.DRAINING},
    ConnectionState.DRAINING: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: set(),
}


class OutboundChannel:
    """FIFO of serialized text frames with a single consumer.

    ``send`` never suspends. With ``maxsize > 0`` the newest frame is dropped
    once the bound is reached.
    """

    def __init__(self, maxsize: int = 0, connection_id: Optional[int] = None):
        # the bound is enforced in send() so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue()
        self._maxsize = maxsize
        self._closed = False
        self.connection_id = connection_id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def qsize(self) -> int:
        size = self._queue.qsize()
        return size - 1 if self._closed and size else size

    def send(self, frame: str) -> None:
        if self._closed:
            raise ChannelClosed(self.connection_id)
        if self._maxsize > 0 and self._queue.qsize() >= self._maxsize:
            raise ChannelFull(self.connection_id)
        self._queue.put_nowait(frame)

    async def recv(self) -> Optional[str]:
        """Next frame, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the marker so later recv() calls also see the end
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)


class Connection:
    """One client. The id is assigned by the registry after the upgrade."""

    def __init__(self, queue_maxsize: int = 0):
        self.id: Optional[int] = None
        self.channel = OutboundChannel(queue_maxsize)
        self.state = ConnectionState.CONNECTING

    def __repr__(self) -> str:
        return f"<Connection id={self.id} state={self.state.value}>"

    def assign_id(self, connection_id: int) -> None:
        self.id = connection_id
        self.channel.connection_id = connection_id

    def transition(self, target: ConnectionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(self.state, target)
        logger.debug("Connection %s: %s -> %s", self.id, self.state.value, target.value)
        self.state = target

    def begin_draining(self) -> None:
        self.transition(ConnectionState.DRAINING)

    def mark_closed(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.transition(ConnectionState.CLOSED)
        self.channel.close()
