"""Message fan-out and room teardown.

Sends always go to a snapshot of the room taken under the room lock; the lock
is released before any network write. A recipient whose send fails is closed
and removed on the spot, and its departure goes through the same admin/empty
checks as a normal disconnect.
"""
import asyncio
from typing import Hashable, List, Tuple

from backend import LeaveOutcome, Room, RoomRegistry, TransportError
from constants import ROOM_CLOSED_TEXT
from logging_config import get_logger
from schemas.rooms import ChatEvent, RoomClosedEvent

logger = get_logger(__name__)


class BroadcastEngine:
    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry

    async def broadcast(self, room: Room, sender: str, text: str) -> int:
        """Send ``text`` from ``sender`` to every other member of ``room``.

        Returns the number of members it was delivered to. Failed recipients
        are evicted after the round.
        """
        recipients = room.snapshot_members(exclude=sender)
        if not recipients:
            return 0

        payload = ChatEvent(user=sender, text=text).model_dump_json()
        results = await asyncio.gather(
            *[self._safe_send(conn, payload) for conn, _ in recipients],
            return_exceptions=True
        )

        failed = [
            (conn, name) for (conn, name), ok in zip(recipients, results)
            if ok is not True
        ]
        await self._evict(room, failed)

        delivered = len(recipients) - len(failed)
        logger.debug(f"Message from {sender} in room {room.id} delivered to {delivered}/{len(recipients)} members")
        return delivered

    async def close_room(self, room: Room) -> None:
        """Notify and disconnect everyone in ``room``, then drop it from the registry."""
        members = room.close()
        logger.info(f"Closing room {room.id} ({len(members)} members)")
        payload = RoomClosedEvent(text=ROOM_CLOSED_TEXT).model_dump_json()
        try:
            await asyncio.gather(
                *[self._notify_and_close(conn, payload) for conn, _ in members],
                return_exceptions=True
            )
        finally:
            self.registry.delete(room.id, room)

    async def depart(self, room: Room, connection: Hashable) -> LeaveOutcome:
        outcome = room.leave(connection)
        if not outcome.was_member:
            return outcome

        if outcome.was_admin:
            logger.info(f"Admin {outcome.username} left room {room.id}. Closing room.")
            await self.close_room(room)
        elif outcome.is_empty:
            self.registry.delete(room.id, room)
        return outcome

    async def _evict(self, room: Room, failed: List[Tuple[Hashable, str]]) -> None:
        for conn, name in failed:
            logger.warning(f"Error broadcasting to {name} in room {room.id}, disconnecting")
            await conn.close()
            await self.depart(room, conn)

    async def _safe_send(self, connection, payload: str) -> bool:
        try:
            await connection.send(payload)
            return True
        except TransportError as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    async def _notify_and_close(self, connection, payload: str) -> None:
        try:
            await connection.send(payload)
        except TransportError as e:
            logger.debug(f"Could not deliver room-closed notice: {e}")
        finally:
            await connection.close()
