"""
Type definitions for the desktop/mobile relay.

Shared by the registry, the pairing protocol and the manager so every layer
speaks the same vocabulary for roles, connections and side effects.
"""

from dataclasses import dataclass, field
from typing import Optional, Any, Union
from enum import Enum
import secrets
import time


class Role(str, Enum):
    """Peer identity within a session."""
    DESKTOP = "desktop"
    MOBILE = "mobile"

    @property
    def partner(self) -> "Role":
        """The opposite role in the same session."""
        return Role.MOBILE if self is Role.DESKTOP else Role.DESKTOP


class ConnectionState(str, Enum):
    """State of a relay connection."""
    OPEN = "open"
    CLOSED = "closed"


class StatusEvent(str, Enum):
    """Events carried in relay-emitted status envelopes."""
    PARTNER_CONNECTED = "partner_connected"
    PARTNER_DISCONNECTED = "partner_disconnected"


# The only envelope type the relay itself produces
STATUS_TYPE = "status"


def envelope(msg_type: str, payload: Optional[dict] = None) -> dict:
    """Build a `{"type", "payload"}` wire envelope."""
    return {"type": msg_type, "payload": payload or {}}


def status_envelope(event: StatusEvent) -> dict:
    """Status envelope announcing a partner change."""
    return envelope(STATUS_TYPE, {"event": event.value})


@dataclass(eq=False)
class RelayConnection:
    """
    One accepted WebSocket bound to a `(session, role)` pair.

    Compared by identity: two connections are never equal just because they
    carry the same session and role.
    """
    session: str
    role: Role
    websocket: Any  # FastAPI WebSocket
    cid: str = field(default_factory=lambda: secrets.token_hex(4))

    # Last inbound frame, for diagnostics
    last_seen: float = field(default_factory=time.time)

    # Lifecycle tracking
    connected_at: float = field(default_factory=time.time)
    state: ConnectionState = ConnectionState.OPEN
    released: bool = False  # Disconnect path already ran

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def mark_seen(self) -> None:
        self.last_seen = time.time()

    def idle_seconds(self) -> float:
        return time.time() - self.last_seen

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    @property
    def short_session(self) -> str:
        return self.session[:8] if self.session else "none"

    def __repr__(self) -> str:
        return f"RelayConnection({self.cid}, {self.role.value}@{self.short_session})"


@dataclass
class Session:
    """Registry record for one pairing: at most one connection per role."""
    session_id: str
    created_at: float = field(default_factory=time.time)
    desktop: Optional[RelayConnection] = None
    mobile: Optional[RelayConnection] = None

    def slot(self, role: Role) -> Optional[RelayConnection]:
        return self.desktop if role is Role.DESKTOP else self.mobile

    def assign(self, role: Role, connection: Optional[RelayConnection]) -> None:
        if role is Role.DESKTOP:
            self.desktop = connection
        else:
            self.mobile = connection

    def clear_if_match(self, role: Role, connection: RelayConnection) -> bool:
        """Empty the slot only if it still holds this connection."""
        if self.slot(role) is connection:
            self.assign(role, None)
            return True
        return False

    def live_partner(self, role: Role) -> Optional[RelayConnection]:
        """Connection in the opposite slot, if it is still open."""
        partner = self.slot(role.partner)
        if partner is not None and partner.is_open:
            return partner
        return None

    @property
    def is_empty(self) -> bool:
        return self.desktop is None and self.mobile is None

    def age_seconds(self, now: float) -> float:
        return now - self.created_at


# =============================================================================
# Side effects returned by the pairing protocol
# =============================================================================

@dataclass(frozen=True)
class SendEffect:
    """Send a JSON envelope to a connection."""
    target: RelayConnection
    message: dict


@dataclass(frozen=True)
class CloseEffect:
    """Close a connection with a WebSocket close code."""
    target: RelayConnection
    code: int
    reason: str


Effect = Union[SendEffect, CloseEffect]


# Close codes (WebSocket standard + relay-specific)
class CloseCode:
    NORMAL = 1000
    GOING_AWAY = 1001
    ABNORMAL = 1006  # Transport lost without a close frame
    INTERNAL_ERROR = 1011

    # Custom codes (4000-4999)
    INVALID_HANDSHAKE = 4000  # Missing or invalid role/session
    SESSION_NOT_FOUND = 4001  # Mobile joined before any desktop
    REPLACED = 4002  # Superseded by a newer same-role connection
