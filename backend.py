"""In-memory room state: rooms, their members and the registry that owns them.

Locks are held only for the dict update or snapshot and never across an
``await``.
"""
import secrets
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from constants import (
    ERR_DUPLICATE_USERNAME,
    ERR_INVALID_MESSAGE,
    ERR_MISSING_PARAMS,
    ERR_ROOM_NOT_FOUND,
    ROOM_ID_CHARSET,
    ROOM_ID_LENGTH,
)
from logging_config import get_logger

logger = get_logger(__name__)


class RelayError(Exception):
    pass


class ValidationError(RelayError):
    """A request the client can fix. ``text`` is sent back to that client only."""

    text = "Invalid request"

    def __init__(self, text: Optional[str] = None):
        if text is not None:
            self.text = text
        super().__init__(self.text)


class MissingParameters(ValidationError):
    text = ERR_MISSING_PARAMS


class RoomNotFound(ValidationError):
    text = ERR_ROOM_NOT_FOUND


class DuplicateUsername(ValidationError):
    text = ERR_DUPLICATE_USERNAME


class InvalidMessage(ValidationError):
    text = ERR_INVALID_MESSAGE


class TransportError(RelayError):
    """Read or write failure on a connection. Treated as a normal departure."""


class RoomCreationPolicy(str, Enum):
    EXPLICIT = "explicit"  # rooms come from create_room only
    IMPLICIT = "implicit"  # first join creates the room


@dataclass(frozen=True)
class JoinResult:
    is_admin: bool
    member_count: int


@dataclass(frozen=True)
class LeaveOutcome:
    was_member: bool
    username: Optional[str] = None
    was_admin: bool = False
    is_empty: bool = False


class Room:
    """A named group of connections that relay messages to each other.

    The first member to join becomes the admin. Once the admin leaves or the
    last member leaves the room is closed for good and rejects further joins.
    """

    def __init__(self, room_id: str) -> None:
        self.id = room_id
        self.admin: Optional[str] = None
        self.closed = False
        self._members: Dict[Hashable, str] = {}
        self._lock = threading.Lock()

    def join(self, connection: Hashable, username: str) -> JoinResult:
        with self._lock:
            if self.closed:
                raise RoomNotFound()
            if username in self._members.values():
                raise DuplicateUsername()

            is_admin = not self._members
            if is_admin:
                self.admin = username
            self._members[connection] = username
            count = len(self._members)

        if is_admin:
            logger.info(f"User {username} is the admin of room {self.id}")
        logger.info(f"User {username} joined room {self.id} ({count} members)")
        return JoinResult(is_admin=is_admin, member_count=count)

    def leave(self, connection: Hashable) -> LeaveOutcome:
        """Remove ``connection``. Calling it twice for the same connection is harmless."""
        with self._lock:
            username = self._members.pop(connection, None)
            if username is None:
                return LeaveOutcome(was_member=False)

            was_admin = username == self.admin
            is_empty = not self._members
            if was_admin or is_empty:
                self.closed = True
                self.admin = None

        logger.info(f"User {username} left room {self.id}")
        return LeaveOutcome(
            was_member=True,
            username=username,
            was_admin=was_admin,
            is_empty=is_empty,
        )

    def close(self) -> List[Tuple[Hashable, str]]:
        """Mark the room closed and hand back everyone who was still in it."""
        with self._lock:
            self.closed = True
            self.admin = None
            members = list(self._members.items())
            self._members.clear()
        return members

    def snapshot_members(self, exclude: Optional[str] = None) -> List[Tuple[Hashable, str]]:
        with self._lock:
            return [
                (conn, name) for conn, name in self._members.items()
                if name != exclude
            ]

    def is_admin(self, username: str) -> bool:
        with self._lock:
            return self.admin is not None and self.admin == username

    def usernames(self) -> List[str]:
        with self._lock:
            return list(self._members.values())

    @property
    def member_count(self) -> int:
        with self._lock:
            return len(self._members)

    def info(self) -> dict:
        with self._lock:
            return {
                "roomID": self.id,
                "admin": self.admin,
                "memberCount": len(self._members),
                "members": sorted(self._members.values()),
            }


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_ID_CHARSET) for _ in range(length))


class RoomRegistry:
    """Owns the room-id -> Room map. One instance per application."""

    def __init__(self, id_factory: Callable[[], str] = generate_room_id) -> None:
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._id_factory = id_factory

    def create_room(self) -> str:
        with self._lock:
            room_id = self._id_factory()
            while room_id in self._rooms:
                logger.debug(f"Room id {room_id} already in use, generating another")
                room_id = self._id_factory()
            self._rooms[room_id] = Room(room_id)
            total = len(self._rooms)
        # Rooms nobody ever joins are kept until the process exits
        logger.info(f"Room {room_id} created ({total} rooms registered)")
        return room_id

    def get_or_create(self, room_id: str) -> Room:
        """Return the live room for ``room_id``, creating an empty one if needed.

        A room that is closed but not yet removed is replaced by a new one.
        """
        with self._lock:
            room = self._rooms.get(room_id)
            if room is not None and not room.closed:
                return room
            room = Room(room_id)
            self._rooms[room_id] = room
        logger.info(f"Room {room_id} created")
        return room

    def get(self, room_id: str) -> Optional[Room]:
        with self._lock:
            room = self._rooms.get(room_id)
        if room is None or room.closed:
            return None
        return room

    def exists(self, room_id: str) -> bool:
        return self.get(room_id) is not None

    def delete(self, room_id: str, room: Optional[Room] = None) -> bool:
        """Remove ``room_id``. Deleting an unknown id is a no-op.

        When ``room`` is given the entry is only removed if it still maps to
        that exact Room, so a late teardown never removes a newer room that
        took over the same id.
        """
        with self._lock:
            current = self._rooms.get(room_id)
            if current is None or (room is not None and current is not room):
                return False
            del self._rooms[room_id]
        logger.info(f"Room {room_id} deleted")
        return True

    def room_ids(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return self.exists(room_id)
