from pydantic import BaseModel
from typing import Literal, Optional


# HTTP

class CreateRoomResponse(BaseModel):
    roomID: str

class RoomExistsResponse(BaseModel):
    exists: bool

class RoomDetailsResponse(BaseModel):
    roomID: str
    admin: Optional[str]
    memberCount: int
    members: list[str]

class HealthResponse(BaseModel):
    status: str
    roomCreation: str
    rooms: int


# WebSocket, server -> client

class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    text: str

class AdminStatusEvent(BaseModel):
    type: Literal["admin-status"] = "admin-status"
    isAdmin: bool

class ChatEvent(BaseModel):
    type: Literal["message"] = "message"
    user: str
    text: str

class RoomClosedEvent(BaseModel):
    type: Literal["room-closed"] = "room-closed"
    text: str


# WebSocket, client -> server

class InboundMessage(BaseModel):
    # Unknown keys are ignored; only text is relayed
    text: str
