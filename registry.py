import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from events import HOST_DISCONNECTED, VIEWER_JOINED
from gateway import ConnectionGateway
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Room:
    room_id: str
    host_id: str
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())


class RoomRegistry:
    """In-memory map of room id to its host.

    Every mutation runs under one lock and never awaits I/O while holding it:
    notifications go out through the gateway's non-blocking send queue.
    Who receives a room's broadcasts is tracked by the gateway group named
    after the room.
    """

    def __init__(self, gateway: ConnectionGateway):
        self.gateway = gateway
        self._rooms: Dict[str, Room] = {}
        self._lock = asyncio.Lock()

    async def create_room(self, connection_id: str, room_id: str) -> Optional[Room]:
        """Register connection_id as host of room_id, replacing any previous host."""
        async with self._lock:
            if not self.gateway.is_alive(connection_id):
                logger.debug(f"Ignoring create-room {room_id} from closed connection {connection_id}")
                return None
            previous = self._rooms.get(room_id)
            if previous is not None and previous.host_id != connection_id:
                logger.info(f"Room {room_id} host replaced: {previous.host_id} -> {connection_id}")
            room = Room(room_id=room_id, host_id=connection_id)
            self._rooms[room_id] = room
            self.gateway.join_group(connection_id, room_id)
        logger.info(f"Room created: {room_id}")
        return room

    async def join_room(self, connection_id: str, room_id: str) -> bool:
        """Add connection_id to an existing room and tell its host.

        Joining a room that does not exist is a silent no-op and returns False.
        """
        async with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                logger.debug(f"Join ignored: room {room_id} not found (connection {connection_id})")
                return False
            self.gateway.join_group(connection_id, room_id)
            if connection_id != room.host_id:
                self.gateway.send(room.host_id, VIEWER_JOINED, connection_id)
        logger.info(f"User {connection_id} joined room {room_id}")
        return True

    async def remove_rooms_owned_by(self, connection_id: str) -> List[str]:
        """Close every room hosted by connection_id, notifying the remaining members first."""
        async with self._lock:
            owned = [room_id for room_id, room in self._rooms.items() if room.host_id == connection_id]
            for room_id in owned:
                self.gateway.broadcast(room_id, HOST_DISCONNECTED, exclude=connection_id)
                del self._rooms[room_id]
                self.gateway.discard_group(room_id)
        for room_id in owned:
            logger.info(f"Room {room_id} closed")
        return owned

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def list_rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def members(self, room_id: str) -> Set[str]:
        if room_id not in self._rooms:
            return set()
        return self.gateway.group_members(room_id)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
