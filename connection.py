"""Connection channels: the duplex text stream the room core talks through."""
from typing import Protocol

from fastapi import WebSocket, WebSocketDisconnect

from backend import TransportError
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionChannel(Protocol):
    """What the room core needs from one client's connection.

    ``send`` and ``receive`` raise ``TransportError`` on any failure.
    ``close`` may be called any number of times.
    """

    async def send(self, text: str) -> None: ...

    async def receive(self) -> str: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketChannel:
    """``ConnectionChannel`` over an accepted FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.closed = False

    async def send(self, text: str) -> None:
        if self.closed:
            raise TransportError("connection is closed")
        try:
            await self.websocket.send_text(text)
        except Exception as e:
            raise TransportError(f"send failed: {e}") from e

    async def receive(self) -> str:
        if self.closed:
            raise TransportError("connection is closed")
        try:
            text = await self.websocket.receive_text()
        except WebSocketDisconnect as e:
            raise TransportError(f"peer disconnected (code {e.code})") from e
        except Exception as e:
            raise TransportError(f"receive failed: {e}") from e
        # Closed by someone else (room shutdown) while we were waiting
        if self.closed:
            raise TransportError("connection is closed")
        return text

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")

    def __repr__(self) -> str:
        client = self.websocket.client
        peer = f"{client.host}:{client.port}" if client else "unknown"
        return f"<WebSocketChannel {peer}{' closed' if self.closed else ''}>"
