import pytest

from gateway import ConnectionGateway
from handlers import SignalingHandler
from registry import RoomRegistry
from relay import MessageRelay


class FakeWebSocket:
    """Records what the gateway writes instead of talking to a real socket."""

    def __init__(self, fail_sends: bool = False):
        self.accepted = False
        self.sent = []
        self.fail_sends = fail_sends

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail_sends:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self):
        return [message["event"] for message in self.sent]

    def received(self, event):
        return [message["data"] for message in self.sent if message["event"] == event]


@pytest.fixture
def gateway() -> ConnectionGateway:
    return ConnectionGateway()


@pytest.fixture
def registry(gateway: ConnectionGateway) -> RoomRegistry:
    return RoomRegistry(gateway)


@pytest.fixture
def relay(gateway: ConnectionGateway) -> MessageRelay:
    return MessageRelay(gateway)


@pytest.fixture
def handler(gateway: ConnectionGateway, registry: RoomRegistry, relay: MessageRelay) -> SignalingHandler:
    return SignalingHandler(gateway, registry, relay)


@pytest.fixture
def connect(gateway: ConnectionGateway):
    """Accept a fake socket on the gateway and return (connection_id, socket)."""

    async def _connect(**kwargs):
        websocket = FakeWebSocket(**kwargs)
        connection = await gateway.accept(websocket)
        return connection.connection_id, websocket

    return _connect


@pytest.fixture
def open_client(handler: SignalingHandler):
    """Open a fake socket through the signaling handler, as the /ws endpoint does."""

    async def _open():
        websocket = FakeWebSocket()
        connection_id = await handler.open(websocket)
        return connection_id, websocket

    return _open
