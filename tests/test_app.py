"""End-to-end tests through the FastAPI app and its /ws endpoint."""

import time

import pytest
from fastapi.testclient import TestClient

from app import app, init_state


@pytest.fixture
def client():
    init_state(app)
    with TestClient(app) as test_client:
        yield test_client


def open_socket(client: TestClient):
    session = client.websocket_connect("/ws").__enter__()
    hello = session.receive_json()
    assert hello["event"] == "connected"
    return session, hello["data"]["connectionId"]


def wait_for(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def room_status(client: TestClient, room_id: str) -> int:
    return client.get(f"/rooms/{room_id}").status_code


def test_host_viewer_session(client):
    host, host_id = open_socket(client)
    viewer, viewer_id = open_socket(client)

    host.send_json({"event": "create-room", "data": "abc"})
    assert wait_for(lambda: room_status(client, "abc") == 200)

    viewer.send_json({"event": "join-room", "data": "abc"})
    assert host.receive_json() == {"event": "viewer-joined", "data": viewer_id}

    offer = {"type": "offer", "sdp": "P1"}
    host.send_json({"event": "offer", "data": {"offer": offer, "roomId": "abc"}})
    assert viewer.receive_json() == {"event": "offer", "data": offer}

    answer = {"type": "answer", "sdp": "P2"}
    viewer.send_json({"event": "answer", "data": {"answer": answer, "roomId": "abc"}})
    assert host.receive_json() == {"event": "answer", "data": answer}

    candidate = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.1 5000 typ host"}
    viewer.send_json({"event": "ice-candidate", "data": {"candidate": candidate, "roomId": "abc"}})
    assert host.receive_json() == {"event": "ice-candidate", "data": candidate}

    details = client.get("/rooms/abc").json()
    assert details["host_id"] == host_id
    assert details["viewer_count"] == 1

    host.__exit__(None, None, None)
    assert viewer.receive_json() == {"event": "host-disconnected", "data": None}
    assert room_status(client, "abc") == 404

    late, late_id = open_socket(client)
    late.send_json({"event": "join-room", "data": "abc"})
    # frames of one connection are handled in order, so the join has been processed once the probe room exists
    late.send_json({"event": "create-room", "data": "probe"})
    assert wait_for(lambda: room_status(client, "probe") == 200)
    assert room_status(client, "abc") == 404
    assert "abc" not in app.state.registry
    assert late_id not in app.state.gateway.group_members("abc")

    late.__exit__(None, None, None)
    viewer.__exit__(None, None, None)


def test_malformed_frames_keep_connection_open(client):
    host, _ = open_socket(client)
    viewer, _ = open_socket(client)

    host.send_text("not json")
    host.send_json(["not", "an", "object"])
    host.send_json({"event": "create-room", "data": "abc"})
    assert wait_for(lambda: room_status(client, "abc") == 200)

    viewer.send_json({"event": "join-room", "data": "abc"})
    assert host.receive_json()["event"] == "viewer-joined"

    viewer.__exit__(None, None, None)
    host.__exit__(None, None, None)


def test_host_with_two_rooms(client):
    host, _ = open_socket(client)
    first, _ = open_socket(client)
    second, _ = open_socket(client)

    host.send_json({"event": "create-room", "data": "one"})
    host.send_json({"event": "create-room", "data": "two"})
    assert wait_for(lambda: len(client.get("/rooms/").json()["rooms"]) == 2)

    first.send_json({"event": "join-room", "data": "one"})
    assert host.receive_json()["event"] == "viewer-joined"
    second.send_json({"event": "join-room", "data": "two"})
    assert host.receive_json()["event"] == "viewer-joined"

    host.__exit__(None, None, None)
    assert first.receive_json() == {"event": "host-disconnected", "data": None}
    assert second.receive_json() == {"event": "host-disconnected", "data": None}
    assert client.get("/rooms/").json() == {"rooms": [], "count": 0}

    second.__exit__(None, None, None)
    first.__exit__(None, None, None)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "connections": 0, "rooms": 0}


def test_unknown_room_details(client):
    response = client.get("/rooms/missing")

    assert response.status_code == 404
    assert response.json() == {"detail": "Room not found"}


def test_shutdown_flushes_pending_messages():
    init_state(app)
    gateway = app.state.gateway
    drained = []
    original_drain = gateway.drain

    async def recording_drain():
        drained.append(True)
        await original_drain()

    gateway.drain = recording_drain
    with TestClient(app) as test_client:
        assert test_client.get("/health").status_code == 200
        assert drained == []

    assert drained == [True]
