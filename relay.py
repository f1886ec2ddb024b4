from typing import Any

from gateway import ConnectionGateway
from logging_config import get_logger

logger = get_logger(__name__)


class MessageRelay:
    """Forwards negotiation payloads between members of a room without reading them."""

    def __init__(self, gateway: ConnectionGateway):
        self.gateway = gateway

    def forward(self, sender_id: str, room_id: str, kind: str, payload: Any) -> int:
        delivered = self.gateway.broadcast(room_id, kind, payload, exclude=sender_id)
        if not delivered:
            logger.debug(f"Dropped {kind} from {sender_id}: no other members in room {room_id}")
        else:
            logger.debug(f"Relayed {kind} from {sender_id} to {delivered} members of room {room_id}")
        return delivered
