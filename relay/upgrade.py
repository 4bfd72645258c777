"""
Upgrade router shared by every listener.

An ASGI middleware that lets WebSocket upgrades through only on the relay
endpoint path. Any other upgrade is refused before it is accepted, so the
client never gets a WebSocket. HTTP traffic passes through untouched.

Both the plain and the TLS listener serve the same application, so this is
the single demultiplexing point for relay connections.

ASGI has no way to drop a handshake without answering it. Closing before
accept is the closest thing: uvicorn replies with HTTP 403 and no upgrade
happens, so the client sees a failed handshake rather than a reset.
"""

import logging

from starlette.types import ASGIApp, Receive, Scope, Send


logger = logging.getLogger("relay")


def is_relay_path(path: str, endpoint_path: str) -> bool:
    """True if an upgrade request for `path` belongs to the relay."""
    return path == endpoint_path


class UpgradeRouter:
    """Refuses WebSocket upgrades outside the relay endpoint."""

    def __init__(self, app: ASGIApp, endpoint_path: str = "/ws"):
        self.app = app
        self.endpoint_path = endpoint_path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "websocket":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if is_relay_path(path, self.endpoint_path):
            await self.app(scope, receive, send)
            return

        logger.warning(f"Refused upgrade on {path!r}")
        # Closing before accept makes the server reject the handshake
        await send({"type": "websocket.close", "code": 1008, "reason": ""})
