"""
Point and Prompt Relay

Pairs a desktop initiator with a mobile companion over WebSockets and
forwards frames between them for the lifetime of a session.

Features:
- Session registry keyed by a client-generated token
- Role pairing with same-role replacement (close code 4002)
- Verbatim, best-effort frame relay
- Protocol-level ping/pong keepalive, failing silent connections with 1011
- Periodic expiry of sessions older than the TTL

Usage:
    from relay import RelayManager, Config

    config = Config.from_env()
    manager = RelayManager(relay_config=config.relay, heartbeat_config=config.heartbeat)
    manager.start()

    @app.websocket("/ws")
    async def relay_endpoint(websocket: WebSocket, role: str, session: str):
        await manager.handle_connection(websocket, role, session)
"""

# Type definitions
from .types import (
    Role,
    ConnectionState,
    StatusEvent,
    RelayConnection,
    Session,
    SendEffect,
    CloseEffect,
    CloseCode,
)

# Configuration
from .config import (
    Config,
    ServerConfig,
    RelayConfig,
    HeartbeatConfig,
    LLMConfig,
    logger,
    setup_logging,
)

# Errors
from .errors import (
    RelayError,
    InvalidHandshake,
    SessionNotFound,
    ReplacedBySibling,
    LivenessTimeout,
)

# Registry and pairing
from .sessions import SessionRegistry
from .pairing import parse_handshake, on_join, on_leave, expire_sessions

# Background sweeps
from .heartbeat import HeartbeatManager
from .reaper import SessionReaper

# Routing
from .router import MessageRouter, RouterCallbacks
from .upgrade import UpgradeRouter

# Relay manager
from .relay_manager import RelayManager

__all__ = [
    # Types
    "Role",
    "ConnectionState",
    "StatusEvent",
    "RelayConnection",
    "Session",
    "SendEffect",
    "CloseEffect",
    "CloseCode",

    # Configuration
    "Config",
    "ServerConfig",
    "RelayConfig",
    "HeartbeatConfig",
    "LLMConfig",
    "logger",
    "setup_logging",

    # Errors
    "RelayError",
    "InvalidHandshake",
    "SessionNotFound",
    "ReplacedBySibling",
    "LivenessTimeout",

    # Registry and pairing
    "SessionRegistry",
    "parse_handshake",
    "on_join",
    "on_leave",
    "expire_sessions",

    # Background sweeps
    "HeartbeatManager",
    "SessionReaper",

    # Routing
    "MessageRouter",
    "RouterCallbacks",
    "UpgradeRouter",

    # Manager
    "RelayManager",
]

__version__ = "1.0.0"
