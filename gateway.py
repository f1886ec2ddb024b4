import asyncio
import inspect
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)

DisconnectCallback = Callable[[str], Union[Awaitable[None], None]]


@dataclass
class Connection:
    connection_id: str
    websocket: WebSocket
    alive: bool = True
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    writer: Optional[asyncio.Task] = None


class ConnectionGateway:
    """Owns every live WebSocket and the transport-level groups they belong to.

    Sends are queued per connection and written by one writer task per
    connection, so callers never wait on socket I/O and each connection
    receives its frames in the order they were queued.
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        # Format: {group: {connection_id, ...}}
        self._groups: Dict[str, Set[str]] = {}
        self._disconnect_callbacks: Dict[str, List[DisconnectCallback]] = {}

    async def accept(self, websocket: WebSocket) -> Connection:
        await websocket.accept()
        connection = Connection(connection_id=str(uuid.uuid4()), websocket=websocket)
        self._connections[connection.connection_id] = connection
        connection.writer = asyncio.create_task(self._write_loop(connection))
        logger.info(f"User connected: {connection.connection_id}")
        return connection

    async def _write_loop(self, connection: Connection):
        while True:
            message = await connection.outbox.get()
            try:
                await connection.websocket.send_json(message)
                logger.debug(f"Sent {message.get('event')} to connection {connection.connection_id}")
            except Exception as e:
                # the receive loop notices the closed socket and tears the connection down
                logger.warning(f"Error sending to connection {connection.connection_id}: {e}")
            finally:
                connection.outbox.task_done()

    def is_alive(self, connection_id: str) -> bool:
        connection = self._connections.get(connection_id)
        return connection is not None and connection.alive

    def connection_count(self) -> int:
        return len(self._connections)

    def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        """Queue one frame for a single connection. Returns False if it is gone."""
        connection = self._connections.get(connection_id)
        if connection is None or not connection.alive:
            logger.debug(f"Dropping {event} for unknown connection {connection_id}")
            return False
        connection.outbox.put_nowait({"event": event, "data": data})
        return True

    def broadcast(self, group: str, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        """Queue one frame for every member of a group except `exclude`.

        Returns how many connections the frame was queued for.
        """
        delivered = 0
        for connection_id in list(self._groups.get(group, ())):
            if connection_id == exclude:
                continue
            if self.send(connection_id, event, data):
                delivered += 1
        logger.debug(f"Broadcast {event} to {delivered} connections in group {group}")
        return delivered

    def join_group(self, connection_id: str, group: str):
        self._groups.setdefault(group, set()).add(connection_id)

    def discard_group(self, group: str):
        self._groups.pop(group, None)

    def group_members(self, group: str) -> Set[str]:
        return set(self._groups.get(group, ()))

    def on_disconnect(self, connection_id: str, callback: DisconnectCallback):
        """Register a callback run once when the connection is torn down."""
        self._disconnect_callbacks.setdefault(connection_id, []).append(callback)

    async def disconnect(self, connection_id: str):
        """Tear a connection down. Only the first call for a connection has any effect."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return
        connection.alive = False
        logger.info(f"User disconnected: {connection_id}")

        for group in list(self._groups):
            members = self._groups[group]
            members.discard(connection_id)
            if not members:
                del self._groups[group]

        if connection.writer is not None:
            connection.writer.cancel()
            try:
                await connection.writer
            except asyncio.CancelledError:
                pass

        for callback in self._disconnect_callbacks.pop(connection_id, []):
            try:
                result = callback(connection_id)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Disconnect callback failed for connection {connection_id}: {e}", exc_info=True)

    async def drain(self):
        """Wait until every queued frame of every live connection has been written.

        Used by tests and before shutdown to flush pending notifications.
        """
        await asyncio.gather(*(connection.outbox.join() for connection in list(self._connections.values())))
