"""
Message Router for paired relay connections.

Handles:
- Activity bookkeeping for every inbound frame
- Forwarding every frame verbatim to the partner connection

The router never interprets application payloads, so any `type` a client
uses passes through untouched.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .sessions import SessionRegistry
from .types import RelayConnection


logger = logging.getLogger("relay.router")

Frame = Union[str, bytes]


@dataclass
class RouterCallbacks:
    """Callbacks for the message router."""
    send_frame: Optional[Callable[[Any, Frame], Awaitable[bool]]] = None


def find_partner(
    registry: SessionRegistry,
    connection: RelayConnection,
) -> Optional[RelayConnection]:
    """Live connection in the opposite role of the sender's session."""
    session = registry.get(connection.session)
    if session is None:
        return None
    return session.live_partner(connection.role)


class MessageRouter:
    """
    Routes inbound frames from one side of a session to the other.

    Delivery is best-effort and at-most-once: with no live partner the frame
    is dropped, and nothing is buffered for later.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        callbacks: Optional[RouterCallbacks] = None,
    ):
        self._registry = registry
        self.callbacks = callbacks or RouterCallbacks()

    async def handle_frame(self, connection: RelayConnection, frame: Frame) -> bool:
        """
        Handle one inbound frame.

        Returns:
            True if the frame was delivered to the partner, False otherwise
        """
        connection.mark_seen()

        # Replaced or expired connections are no longer paired
        if connection.released:
            return False

        partner = find_partner(self._registry, connection)
        if partner is None:
            logger.debug(f"No partner for {connection!r}, dropping frame")
            return False

        if not self.callbacks.send_frame:
            return False

        return await self.callbacks.send_frame(partner.websocket, frame)
