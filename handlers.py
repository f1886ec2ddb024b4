from typing import Any

from fastapi import WebSocket
from pydantic import ValidationError

from events import CONNECTED, CREATE_ROOM, JOIN_ROOM, RELAY_FIELDS, ROOM_ID_FIELD
from gateway import ConnectionGateway
from logging_config import get_logger
from registry import RoomRegistry
from relay import MessageRelay
from schemas.signaling import SignalingMessage

logger = get_logger(__name__)


class SignalingHandler:
    """Routes inbound socket frames to the registry and relay, and cleans up on disconnect."""

    def __init__(self, gateway: ConnectionGateway, registry: RoomRegistry, relay: MessageRelay):
        self.gateway = gateway
        self.registry = registry
        self.relay = relay

    async def open(self, websocket: WebSocket) -> str:
        connection = await self.gateway.accept(websocket)
        connection_id = connection.connection_id
        self.gateway.on_disconnect(connection_id, self.handle_disconnect)
        self.gateway.send(connection_id, CONNECTED, {"connectionId": connection_id})
        return connection_id

    async def close(self, connection_id: str):
        await self.gateway.disconnect(connection_id)

    async def dispatch(self, connection_id: str, raw: Any):
        try:
            message = SignalingMessage.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed frame from connection {connection_id}: {e.error_count()} errors")
            return

        event = message.event
        if event == CREATE_ROOM:
            room_id = self._room_id(connection_id, event, message.data)
            if room_id is not None:
                await self.registry.create_room(connection_id, room_id)
        elif event == JOIN_ROOM:
            room_id = self._room_id(connection_id, event, message.data)
            if room_id is not None:
                await self.registry.join_room(connection_id, room_id)
        elif event in RELAY_FIELDS:
            data = message.data
            if not isinstance(data, dict) or not isinstance(data.get(ROOM_ID_FIELD), str):
                logger.debug(f"Dropped {event} from {connection_id}: no roomId")
                return
            self.relay.forward(connection_id, data[ROOM_ID_FIELD], event, data.get(RELAY_FIELDS[event]))
        else:
            logger.warning(f"Ignoring unknown event {event!r} from connection {connection_id}")

    @staticmethod
    def _room_id(connection_id: str, event: str, data: Any):
        if not isinstance(data, str):
            logger.warning(f"Ignoring {event} from connection {connection_id}: room id must be a string")
            return None
        return data

    async def handle_disconnect(self, connection_id: str):
        # A departing viewer only leaves its gateway groups; hosts take their rooms with them.
        closed = await self.registry.remove_rooms_owned_by(connection_id)
        if closed:
            logger.debug(f"Connection {connection_id} closed {len(closed)} rooms: {closed}")
