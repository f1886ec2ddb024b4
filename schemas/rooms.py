from pydantic import BaseModel


class RoomDetailsResponse(BaseModel):
    room_id: str
    host_id: str
    created_at: str
    member_count: int
    viewer_count: int


class RoomListResponse(BaseModel):
    rooms: list[RoomDetailsResponse]
    count: int


class HealthResponse(BaseModel):
    status: str
    connections: int
    rooms: int
