"""Shared test fixtures for the relay test suite.

Provides a controllable clock, an in-memory WebSocket double that speaks the
subset of the Starlette WebSocket API the relay uses, and connection
factories for exercising the pairing protocol without a transport.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional
from unittest.mock import MagicMock

import pytest
from starlette.websockets import WebSocketState

from relay.sessions import SessionRegistry
from relay.types import RelayConnection, Role


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeWebSocket:
    """In-memory stand-in for a FastAPI WebSocket."""

    def __init__(self):
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent: List[Any] = []
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.application_state = WebSocketState.CONNECTING

        # When set, close() or the next send_json() waits on the event
        self.close_gate: Optional[asyncio.Event] = None
        self.send_gate: Optional[asyncio.Event] = None

    async def accept(self) -> None:
        self.application_state = WebSocketState.CONNECTED

    async def receive(self) -> dict:
        return await self.inbound.get()

    async def send_json(self, data: dict) -> None:
        if self.send_gate is not None:
            gate, self.send_gate = self.send_gate, None
            await gate.wait()
        self._check_open()
        self.sent.append(data)

    async def send_text(self, data: str) -> None:
        self._check_open()
        self.sent.append(data)

    async def send_bytes(self, data: bytes) -> None:
        self._check_open()
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        if self.application_state == WebSocketState.DISCONNECTED:
            raise RuntimeError("already closed")
        if self.close_gate is not None:
            await self.close_gate.wait()
        self.close_code = code
        self.close_reason = reason
        self.application_state = WebSocketState.DISCONNECTED

    def _check_open(self) -> None:
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("WebSocket is not connected")

    # Client-side helpers

    def feed_text(self, text: str) -> None:
        self.inbound.put_nowait({"type": "websocket.receive", "text": text})

    def feed_bytes(self, data: bytes) -> None:
        self.inbound.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code: int = 1000) -> None:
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    @property
    def json_sent(self) -> List[dict]:
        return [m for m in self.sent if isinstance(m, dict)]

    def events(self) -> List[str]:
        """Status events received, in order."""
        return [
            m["payload"]["event"]
            for m in self.json_sent
            if m.get("type") == "status"
        ]


async def settle(rounds: int = 10) -> None:
    """Let scheduled connection tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Registry Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(now=clock)


@pytest.fixture
def make_conn():
    """Factory for connections backed by a MagicMock websocket."""

    def _make(session: str = "session-token-1", role: Role = Role.DESKTOP) -> RelayConnection:
        return RelayConnection(session=session, role=role, websocket=MagicMock())

    return _make
