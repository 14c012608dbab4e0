import asyncio
import logging
from typing import Optional

from .connection import Connection, ConnectionState, OutboundChannel
from .errors import DuplicateConnectionId

logger = logging.getLogger(__name__)


class Registry:
    """Live connections keyed by id.

    All access to the mapping goes through ``_lock``; callers never see the
    dict itself. The lock is only held for insert, remove and snapshot.
    """

    def __init__(self):
        self._connections: dict[int, Connection] = {}
        self._next_id = 0
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    async def allocate_id(self) -> int:
        async with self._lock:
            self._next_id += 1
            return self._next_id

    async def register(self, connection_id: int, connection: Connection) -> None:
        async with self._lock:
            if connection_id in self._connections:
                raise DuplicateConnectionId(connection_id)
            connection.assign_id(connection_id)
            connection.transition(ConnectionState.ACTIVE)
            self._connections[connection_id] = connection
        logger.info("Registered connection %s (%d live)", connection_id, len(self._connections))

    async def unregister(self, connection_id: int) -> Optional[Connection]:
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection is None:
            logger.debug("Connection %s already unregistered", connection_id)
        else:
            logger.info("Unregistered connection %s (%d live)", connection_id, len(self._connections))
        return connection

    async def get(self, connection_id: int) -> Optional[Connection]:
        async with self._lock:
            return self._connections.get(connection_id)

    async def snapshot_for_broadcast(self) -> list[tuple[int, OutboundChannel]]:
        async with self._lock:
            return [(cid, conn.channel) for cid, conn in self._connections.items()]

    async def ids(self) -> list[int]:
        async with self._lock:
            return sorted(self._connections)

    async def close_all(self) -> int:
        """Remove every connection and close its channel. Used on shutdown."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for connection in connections:
            connection.channel.close()
        return len(connections)
