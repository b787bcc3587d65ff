"""Shared test fixtures and fakes for the relay tests."""
import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import RoomRegistry, TransportError
from broadcast import BroadcastEngine


class FakeChannel:
    """In-memory ConnectionChannel.

    Frames fed with ``feed`` are returned by ``receive``; everything sent is
    decoded and kept in ``sent``. ``disconnect`` makes the pending receive fail
    the way a dropped peer would.
    """

    def __init__(self, name: str = "", fail_send: bool = False):
        self.name = name
        self.fail_send = fail_send
        self.sent = []
        self.closed = False
        self.close_code = None
        self._inbound = asyncio.Queue()

    async def send(self, text: str) -> None:
        if self.fail_send or self.closed:
            raise TransportError(f"send to {self.name} failed")
        self.sent.append(json.loads(text))

    async def receive(self) -> str:
        if self.closed:
            raise TransportError("connection is closed")
        frame = await self._inbound.get()
        if frame is None or self.closed:
            raise TransportError("peer disconnected")
        return frame

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self._inbound.put_nowait(None)

    def feed(self, *frames: str) -> None:
        for frame in frames:
            self._inbound.put_nowait(frame)

    def feed_json(self, payload) -> None:
        self.feed(json.dumps(payload))

    def disconnect(self) -> None:
        self._inbound.put_nowait(None)

    def __repr__(self):
        return f"<FakeChannel {self.name}>"


async def eventually(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def engine(registry):
    return BroadcastEngine(registry)


@pytest.fixture
def client():
    """TestClient over a fresh app with the explicit room-creation policy.

    Used as a context manager so every WebSocket session shares one event loop.
    """
    with TestClient(create_app(room_creation="explicit")) as test_client:
        yield test_client


@pytest.fixture
def implicit_client():
    with TestClient(create_app(room_creation="implicit")) as test_client:
        yield test_client
