"""
Relay WebSocket endpoint - desktop and mobile clients connect here.

This endpoint handles:
- Reading the `role` and `session` query parameters
- Delegation to RelayManager for pairing, relaying and cleanup
"""

from typing import Optional

from fastapi import WebSocket, Query

from .relay_manager import RelayManager
from .types import CloseCode


# Set by the application factory
_relay_manager: Optional[RelayManager] = None


def init_relay_routes(relay_manager: RelayManager) -> None:
    """Initialize route dependencies."""
    global _relay_manager
    _relay_manager = relay_manager


async def relay_websocket_endpoint(
    websocket: WebSocket,
    role: Optional[str] = Query(None, description="desktop or mobile"),
    session: Optional[str] = Query(None, description="Client-generated session token"),
) -> None:
    """
    WebSocket endpoint pairing a desktop with a mobile companion.

    Query Parameters:
        role: `desktop` creates the session, `mobile` joins it.
        session: Opaque token shared by both clients (e.g. through a QR code).

    Protocol:
        1. Desktop connects and creates the session
        2. Mobile connects with the same token
        3. Both receive {"type": "status", "payload": {"event": "partner_connected"}}
        4. Every frame is forwarded verbatim to the partner
        5. On a disconnect the partner receives "partner_disconnected"

    Close codes:
        4000 invalid role or session, 4001 session not found,
        4002 replaced by a newer connection for the same role
    """
    if _relay_manager is None:
        await websocket.close(code=CloseCode.INTERNAL_ERROR, reason="Server not initialized")
        return

    await _relay_manager.handle_connection(
        websocket=websocket,
        role=role,
        session_id=session,
    )
