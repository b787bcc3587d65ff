"""Tests for RoomRegistry: id generation, lookup and deletion."""
from concurrent.futures import ThreadPoolExecutor

from backend import Room, RoomRegistry, generate_room_id
from constants import ROOM_ID_CHARSET


def test_generate_room_id_uses_charset_and_length():
    room_id = generate_room_id(12)
    assert len(room_id) == 12
    assert set(room_id) <= set(ROOM_ID_CHARSET)


def test_create_room_stores_empty_room(registry):
    room_id = registry.create_room()

    room = registry.get(room_id)
    assert isinstance(room, Room)
    assert room.id == room_id
    assert room.member_count == 0
    assert room.admin is None
    assert registry.exists(room_id)


def test_create_room_retries_on_collision():
    ids = iter(["dup1", "dup1", "dup1", "next"])
    registry = RoomRegistry(id_factory=lambda: next(ids))

    first = registry.create_room()
    existing = registry.get(first)
    second = registry.create_room()

    assert first == "dup1"
    assert second == "next"
    # The existing room was not overwritten
    assert registry.get("dup1") is existing
    assert len(registry) == 2


def test_concurrent_create_room_never_reuses_an_id():
    # Tiny id space forces plenty of collisions
    registry = RoomRegistry(id_factory=lambda: generate_room_id(3))

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: registry.create_room(), range(400)))

    assert len(set(ids)) == 400
    assert len(registry) == 400


def test_get_unknown_room(registry):
    assert registry.get("missing") is None
    assert not registry.exists("missing")
    assert "missing" not in registry


def test_get_or_create_is_stable(registry):
    room = registry.get_or_create("lobby")
    assert registry.get_or_create("lobby") is room
    assert registry.room_ids() == ["lobby"]


def test_get_or_create_replaces_closed_room(registry):
    old = registry.get_or_create("lobby")
    old.close()

    new = registry.get_or_create("lobby")
    assert new is not old
    assert not new.closed
    assert registry.get("lobby") is new


def test_closed_room_is_not_visible(registry):
    room_id = registry.create_room()
    registry.get(room_id).close()

    assert registry.get(room_id) is None
    assert not registry.exists(room_id)


def test_delete_is_idempotent(registry):
    room_id = registry.create_room()

    assert registry.delete(room_id) is True
    assert registry.delete(room_id) is False
    assert registry.delete("never-existed") is False
    assert not registry.exists(room_id)


def test_delete_with_stale_room_keeps_newer_room(registry):
    old = registry.get_or_create("lobby")
    old.close()
    new = registry.get_or_create("lobby")

    assert registry.delete("lobby", old) is False
    assert registry.get("lobby") is new

    assert registry.delete("lobby", new) is True
    assert registry.get("lobby") is None


def test_unjoined_rooms_stay_registered(registry):
    room_ids = [registry.create_room() for _ in range(5)]

    assert sorted(registry.room_ids()) == sorted(room_ids)
    assert all(registry.exists(room_id) for room_id in room_ids)
