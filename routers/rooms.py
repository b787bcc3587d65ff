from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from schemas.rooms import CreateRoomResponse, ErrorEvent, RoomDetailsResponse, RoomExistsResponse
from backend import RoomRegistry
from constants import ERR_ROOM_ID_REQUIRED, ERR_ROOM_NOT_FOUND
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@rooms_router.post("/create-room", response_model=CreateRoomResponse)
async def create_room(request: Request):
    # Response 200: { "roomID": "aZ3kQ9xw" }
    client_host = request.client.host if request.client else "unknown"
    room_id = get_registry(request).create_room()
    logger.info(f"Room {room_id} created on request from {client_host}")
    return CreateRoomResponse(roomID=room_id)


@rooms_router.get("/room-exists", response_model=RoomExistsResponse)
async def room_exists(request: Request, roomID: str = Query("", description="Room ID to look up")):
    # 200 { "exists": true } | 404 { "type": "error", "text": "Room does not exist" }
    logger.info(f"RoomExists called with roomID: {roomID}")

    if not roomID:
        logger.warning("RoomExists error: roomID is empty")
        return JSONResponse(status_code=400, content=ErrorEvent(text=ERR_ROOM_ID_REQUIRED).model_dump())

    if not get_registry(request).exists(roomID):
        logger.info(f"RoomExists: Room {roomID} does not exist")
        return JSONResponse(status_code=404, content=ErrorEvent(text=ERR_ROOM_NOT_FOUND).model_dump())

    return RoomExistsResponse(exists=True)


@rooms_router.get("/rooms/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get room details.

    Returns:
    - roomID: Room identifier
    - admin: Name of the room admin (null until someone joins)
    - memberCount: Number of connected members
    - members: Connected usernames, sorted
    """
    room = get_registry(request).get(room_id)
    if room is None:
        logger.warning(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomDetailsResponse(**room.info())
