# client -> server
CREATE_ROOM = "create-room"
JOIN_ROOM = "join-room"

# client -> server -> peers, relayed verbatim
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"

# server -> client
CONNECTED = "connected"
VIEWER_JOINED = "viewer-joined"
HOST_DISCONNECTED = "host-disconnected"

# relay event -> field of the inbound payload holding the opaque value
# e.g. {"event": "offer", "data": {"offer": {...}, "roomId": "abc"}}
RELAY_FIELDS = {
    OFFER: "offer",
    ANSWER: "answer",
    ICE_CANDIDATE: "candidate",
}
ROOM_ID_FIELD = "roomId"
