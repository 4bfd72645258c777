"""
Heartbeat Monitor for relay connection health.

Liveness is probed at the WebSocket protocol level, by the listener itself:
every interval the server sends a protocol ping, which browsers and phones
answer automatically with a pong. A connection whose pong has not arrived
by the next probe is failed by the transport with close code 1011. The relay
then sees an ordinary disconnect and runs the pairing disconnect path once.

Nothing is ever written into the application stream, so idle clients (a
desktop waiting for its QR code to be scanned) stay connected as long as
their transport is healthy. A half-open socket (a phone losing signal) is
detected within two intervals.
"""

import logging
from typing import Any, Dict, Optional

from .config import HeartbeatConfig
from .errors import LivenessTimeout
from .types import CloseCode, RelayConnection


logger = logging.getLogger("relay.heartbeat")


class HeartbeatManager:
    """
    Owns the keepalive policy for relay connections.

    Key features:
    - Listener options that turn on protocol pings at the configured interval
    - Recognises transport failures among connection closes
    - Counts them for status reporting
    """

    def __init__(self, config: Optional[HeartbeatConfig] = None):
        self.config = config or HeartbeatConfig()
        self.lost = 0

    @property
    def interval_seconds(self) -> float:
        return self.config.interval_ms / 1000

    def listener_options(self) -> Dict[str, Any]:
        """
        uvicorn settings for protocol-level probing.

        A ping goes out every interval and the pong must be back within one
        interval, so an unanswered probe fails the connection at the next tick.
        Only the `websockets` implementation sends keepalive pings.
        """
        return {
            "ws": "websockets",
            "ws_ping_interval": self.interval_seconds,
            "ws_ping_timeout": self.interval_seconds,
        }

    def is_lost(self, code: Optional[int]) -> bool:
        # A missed probe fails the socket with 1011; a peer that is really
        # gone never echoes that close, so it surfaces as 1006 instead
        return code in (LivenessTimeout.close_code, CloseCode.ABNORMAL)

    def record_close(self, connection: RelayConnection, code: Optional[int]) -> bool:
        """
        Note why a connection's transport went away.

        Returns:
            True if the transport failed it (missed probe or dropped link)
        """
        if not self.is_lost(code):
            return False

        self.lost += 1
        logger.warning(
            f"Connection lost {connection!r} "
            f"(code {code}, idle {connection.idle_seconds():.0f}s)"
        )
        return True
