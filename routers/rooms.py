from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomDetailsResponse, RoomListResponse
from registry import Room, RoomRegistry
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def room_details(registry: RoomRegistry, room: Room) -> RoomDetailsResponse:
    members = registry.members(room.room_id)
    return RoomDetailsResponse(
        room_id=room.room_id,
        host_id=room.host_id,
        created_at=room.created_at,
        member_count=len(members),
        viewer_count=len(members - {room.host_id}),
    )


@rooms_router.get("/", response_model=RoomListResponse)
async def list_rooms(request: Request):
    registry = get_registry(request)
    rooms = [room_details(registry, room) for room in registry.list_rooms()]
    logger.debug(f"Listing {len(rooms)} rooms")
    return RoomListResponse(rooms=rooms, count=len(rooms))


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get the host and member counts of a live room.

    Inspection only: the signaling socket still treats unknown rooms as a silent no-op.
    """
    registry = get_registry(request)
    room = registry.get_room(room_id)
    if not room:
        logger.debug(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return room_details(registry, room)
