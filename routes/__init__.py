"""
HTTP route modules for the relay server.

Note: the relay WebSocket endpoint lives in the relay/ package.
Import it from: from relay.relay_ws import relay_websocket_endpoint
"""

from .ask import router as ask_router
from .health import router as health_router

__all__ = [
    "ask_router",
    "health_router",
]
