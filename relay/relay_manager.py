"""
Relay Manager: owns the pairing state and every live connection.

Integrates:
- Session registry (one per manager, created with it)
- Role pairing with same-role replacement
- Verbatim frame relay between partners
- Keepalive policy for the listeners and the session reaper task
"""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from .config import HeartbeatConfig, RelayConfig
from .errors import RelayError
from .heartbeat import HeartbeatManager
from .pairing import on_join, on_leave, parse_handshake
from .reaper import SessionReaper
from .router import MessageRouter, RouterCallbacks
from .sessions import SessionRegistry
from .transport import close_websocket, send_frame, send_json
from .types import (
    CloseCode,
    CloseEffect,
    Effect,
    RelayConnection,
    SendEffect,
)


logger = logging.getLogger("relay")


class RelayManager:
    """
    Pairs desktop and mobile WebSockets and relays frames between them.

    Usage:
        manager = RelayManager()
        manager.start()

        # In the WebSocket endpoint
        await manager.handle_connection(websocket, role, session)

        # On shutdown
        await manager.close_all()
    """

    def __init__(
        self,
        relay_config: Optional[RelayConfig] = None,
        heartbeat_config: Optional[HeartbeatConfig] = None,
        now: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the relay manager.

        Args:
            relay_config: Endpoint and session TTL settings
            heartbeat_config: Keepalive interval settings
            now: Time function for the registry (injectable for testing)
        """
        self.relay_config = relay_config or RelayConfig()
        self.registry = SessionRegistry(now=now)

        # Every accepted, paired connection regardless of session state
        self._connections: Set[RelayConnection] = set()

        # Closes run in the background; a dead peer can hold one for seconds
        self._closing: Set[asyncio.Task] = set()

        self._router = MessageRouter(
            self.registry,
            callbacks=RouterCallbacks(send_frame=send_frame),
        )

        self._heartbeat = HeartbeatManager(heartbeat_config)

        self._reaper = SessionReaper(
            self.registry,
            config=self.relay_config,
            apply_effects=self.apply_effects,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def start(self) -> None:
        """Start the reaper background task."""
        self._reaper.start()

    @property
    def heartbeat(self) -> HeartbeatManager:
        return self._heartbeat

    @property
    def reaper(self) -> SessionReaper:
        return self._reaper

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def session_count(self) -> int:
        return self.registry.size

    @property
    def pending_closes(self) -> int:
        return len(self._closing)

    def open_connections(self) -> Iterable[RelayConnection]:
        return [conn for conn in self._connections if conn.is_open]

    async def handle_connection(
        self,
        websocket: WebSocket,
        role: Optional[str],
        session_id: Optional[str],
    ) -> None:
        """
        Handle a new relay WebSocket from accept to cleanup.

        This is the main entry point called from the WebSocket endpoint.

        Args:
            websocket: FastAPI WebSocket
            role: `role` query parameter
            session_id: `session` query parameter
        """
        # Accept first so rejections carry a close code
        await websocket.accept()

        try:
            parsed_role = parse_handshake(role, session_id)
            connection = RelayConnection(
                session=session_id,
                role=parsed_role,
                websocket=websocket,
            )
            effects = on_join(self.registry, session_id, parsed_role, connection)
        except RelayError as e:
            logger.info(f"Rejecting {role!r}@{(session_id or 'none')[:8]}: {e}")
            await close_websocket(websocket, e.close_code, e.reason)
            return

        # From here on the slot is ours, so every exit must release it
        try:
            self._connections.add(connection)
            logger.info(f"Connected {connection!r}")
            await self.apply_effects(effects)

            await self._message_loop(websocket, connection)
        except WebSocketDisconnect as e:
            if not self._heartbeat.record_close(connection, e.code):
                logger.info(f"Disconnected {connection!r} ({e.code})")
        except Exception as e:
            logger.error(f"Connection error {connection!r}: {e}", exc_info=True)
        finally:
            await self.release(connection)

    async def release(self, connection: RelayConnection) -> None:
        """
        Run the disconnect path for a connection, at most once.

        Replaced and expired connections were released when they lost their
        slot, so their transport close ends here without notifying anyone.
        """
        connection.mark_closed()
        self._connections.discard(connection)

        if connection.released:
            return
        connection.released = True

        effects = on_leave(
            self.registry, connection.session, connection.role, connection
        )
        await self.apply_effects(effects)

    async def apply_effects(self, effects: List[Effect]) -> None:
        """
        Perform the sends and closes a pairing transition asked for.

        Sends are awaited in order. Closes are handed to background tasks,
        so a peer that never answers the close handshake stalls nobody.
        """
        for effect in effects:
            if isinstance(effect, CloseEffect):
                self._close_later(effect.target.websocket, effect.code, effect.reason)
            elif isinstance(effect, SendEffect):
                if effect.target.is_open:
                    await send_json(effect.target.websocket, effect.message)

    async def close_all(self) -> None:
        """Stop background tasks and close every relay connection."""
        self._reaper.stop()

        for task in list(self._closing):
            task.cancel()

        connections = list(self._connections)
        for conn in connections:
            conn.released = True
            conn.mark_closed()

        await asyncio.gather(
            *(
                close_websocket(conn.websocket, CloseCode.GOING_AWAY, "server shutdown")
                for conn in connections
            ),
            *self._closing,
            return_exceptions=True,
        )

        self._connections.clear()
        self._closing.clear()
        self.registry.clear_all()

    # =========================================================================
    # Private Implementation
    # =========================================================================

    def _close_later(self, websocket: WebSocket, code: int, reason: str) -> None:
        task = asyncio.create_task(close_websocket(websocket, code, reason))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _message_loop(
        self,
        websocket: WebSocket,
        connection: RelayConnection,
    ) -> None:
        """Receive frames until the socket closes, relaying each one."""
        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", CloseCode.NORMAL))

            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            if frame is None:
                continue

            await self._router.handle_frame(connection, frame)
