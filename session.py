"""Per-connection session: join a room, relay messages, clean up.

State machine::

    CONNECTING -> VALIDATING -> ADMITTED -> STREAMING -> CLOSING -> CLOSED
                       |                                    ^
                       +---------- (rejected) --------------+---> CLOSED

A rejected join sends one ``error`` event and ends. Once admitted, cleanup runs
exactly once however the session ends: a receive error, an idle timeout, or
the room being closed underneath it. The admin ``/close`` command tears the
whole room down and skips the normal leave.
"""
import asyncio
from enum import Enum
from typing import Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from backend import (
    InvalidMessage,
    JoinResult,
    MissingParameters,
    Room,
    RoomCreationPolicy,
    RoomNotFound,
    RoomRegistry,
    TransportError,
    ValidationError,
)
from broadcast import BroadcastEngine
from connection import ConnectionChannel
from constants import CLOSE_COMMAND
from logging_config import get_logger
from schemas.rooms import AdminStatusEvent, ErrorEvent, InboundMessage

logger = get_logger(__name__)

# WebSocket close code for rejected joins (policy violation)
REJECT_CLOSE_CODE = 1008


class SessionState(str, Enum):
    CONNECTING = "connecting"
    VALIDATING = "validating"
    ADMITTED = "admitted"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"


def parse_inbound(raw: str) -> str:
    """Extract the chat text from a client frame.

    Raises InvalidMessage unless the frame is a JSON object with a string ``text``.
    An empty ``text`` is valid and relayed as is.
    """
    try:
        message = InboundMessage.model_validate_json(raw)
    except PydanticValidationError:
        raise InvalidMessage()
    return message.text


class Session:
    """One user's stay in one room. The session owns ``channel`` and closes it."""

    def __init__(
        self,
        channel: ConnectionChannel,
        room_id: str,
        username: str,
        registry: RoomRegistry,
        engine: BroadcastEngine,
        room_creation: RoomCreationPolicy = RoomCreationPolicy.EXPLICIT,
        idle_timeout: float = 0,
    ) -> None:
        self.channel = channel
        self.room_id = room_id or ""
        self.username = username or ""
        self.registry = registry
        self.engine = engine
        self.room_creation = RoomCreationPolicy(room_creation)
        self.idle_timeout = idle_timeout
        self.room: Optional[Room] = None
        self.is_admin = False
        self.state = SessionState.CONNECTING

    async def run(self) -> None:
        """Drive the session until it reaches ``CLOSED``."""
        self.state = SessionState.VALIDATING
        try:
            self.room, result = self._admit()
        except ValidationError as e:
            logger.info(f"Rejected {self.username!r} for room {self.room_id!r}: {e.text}")
            await self._reject(e)
            return

        self.is_admin = result.is_admin
        self.state = SessionState.ADMITTED
        try:
            await self.channel.send(AdminStatusEvent(isAdmin=self.is_admin).model_dump_json())
            self.state = SessionState.STREAMING
            await self._stream()
        except TransportError as e:
            logger.info(f"Connection of {self.username} in room {self.room_id} ended: {e}")
        finally:
            await self._cleanup()

    def _admit(self) -> Tuple[Room, JoinResult]:
        if not self.room_id.strip() or not self.username.strip():
            raise MissingParameters()

        room = self._resolve_room()
        try:
            return room, room.join(self.channel, self.username)
        except RoomNotFound:
            # Lost a race with the room's teardown
            if self.room_creation is not RoomCreationPolicy.IMPLICIT:
                raise
        room = self.registry.get_or_create(self.room_id)
        return room, room.join(self.channel, self.username)

    def _resolve_room(self) -> Room:
        if self.room_creation is RoomCreationPolicy.IMPLICIT:
            return self.registry.get_or_create(self.room_id)
        room = self.registry.get(self.room_id)
        if room is None:
            raise RoomNotFound()
        return room

    async def _reject(self, error: ValidationError) -> None:
        try:
            await self.channel.send(ErrorEvent(text=error.text).model_dump_json())
        except TransportError as e:
            logger.debug(f"Could not deliver rejection to {self.username!r}: {e}")
        finally:
            await self.channel.close(code=REJECT_CLOSE_CODE, reason=error.text)
            self.state = SessionState.CLOSED

    async def _stream(self) -> None:
        while True:
            raw = await self._receive()
            try:
                text = parse_inbound(raw)
            except InvalidMessage as e:
                logger.debug(f"Bad message from {self.username} in room {self.room_id}: {e.text}")
                await self.channel.send(ErrorEvent(text=e.text).model_dump_json())
                continue

            logger.debug(f"Message from {self.username} in room {self.room_id}: {text}")

            if text == CLOSE_COMMAND and self.room.is_admin(self.username):
                logger.info(f"Admin {self.username} is closing room {self.room_id}")
                await self.engine.close_room(self.room)
                self.state = SessionState.CLOSED
                return

            await self.engine.broadcast(self.room, self.username, text)

    async def _receive(self) -> str:
        if not self.idle_timeout:
            return await self.channel.receive()
        try:
            return await asyncio.wait_for(self.channel.receive(), timeout=self.idle_timeout)
        except asyncio.TimeoutError:
            raise TransportError(f"idle for more than {self.idle_timeout}s")

    async def _cleanup(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSING
        try:
            await self.engine.depart(self.room, self.channel)
        finally:
            await self.channel.close()
            self.state = SessionState.CLOSED
