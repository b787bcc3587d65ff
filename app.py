from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import RoomCreationPolicy, RoomRegistry
from broadcast import BroadcastEngine
from connection import WebSocketChannel
from session import Session
from schemas.rooms import HealthResponse
from constants import ALLOWED_ORIGINS, IDLE_TIMEOUT_SECONDS, LOG_FILE, LOG_LEVEL, ROOM_CREATION
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


async def websocket_endpoint(websocket: WebSocket, roomID: str = "", username: str = ""):
    """Chat relay endpoint.

    Query parameters:
    - roomID: Room to join
    - username: Display name, unique within the room
    """
    logger.info(f"WebSocket connection attempt for room: {roomID}, username: {username}")
    state = websocket.app.state

    await websocket.accept()
    channel = WebSocketChannel(websocket)
    session = Session(
        channel,
        roomID,
        username,
        registry=state.registry,
        engine=state.engine,
        room_creation=state.room_creation,
        idle_timeout=state.idle_timeout,
    )
    try:
        await session.run()
    except Exception as e:
        logger.error(f"Error in WebSocket session for {username} in room {roomID}: {e}", exc_info=True)
        await channel.close(code=1011)


def create_app(
    room_creation: str = ROOM_CREATION,
    registry: Optional[RoomRegistry] = None,
    idle_timeout: float = IDLE_TIMEOUT_SECONDS,
) -> FastAPI:
    """Build the application and the single registry every handler shares."""
    app = FastAPI(title="EphemeralRelay", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry if registry is not None else RoomRegistry()
    app.state.engine = BroadcastEngine(app.state.registry)
    app.state.room_creation = RoomCreationPolicy(room_creation)
    app.state.idle_timeout = idle_timeout

    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="ok",
            roomCreation=app.state.room_creation.value,
            rooms=len(app.state.registry),
        )

    logger.info(f"FastAPI application initialized (room creation: {app.state.room_creation.value})")
    return app


app = create_app()
