"""
Role-pairing protocol.

State transitions for a session token, written as plain functions over the
registry. Each returns the side effects (sends and closes) the caller must
perform; nothing here touches a socket, so the whole state machine can be
exercised without a transport.

    Absent --desktop join--> Active
    Absent --mobile join---> SessionNotFound
    Active --join----------> Active   (replace same-role, announce partner)
    Active --leave---------> Active | Absent (when both slots are empty)
"""

import logging
from typing import List, Optional

from .errors import InvalidHandshake, ReplacedBySibling, SessionNotFound
from .sessions import SessionRegistry
from .types import (
    CloseCode,
    CloseEffect,
    Effect,
    RelayConnection,
    Role,
    SendEffect,
    StatusEvent,
    status_envelope,
)


logger = logging.getLogger("relay.pairing")


def parse_handshake(role: Optional[str], session_id: Optional[str]) -> Role:
    """
    Validate the join parameters.

    Raises:
        InvalidHandshake: If either value is missing or the role is unknown.
    """
    if not role or not session_id:
        raise InvalidHandshake()
    try:
        return Role(role)
    except ValueError:
        raise InvalidHandshake(f"Unknown role: {role}") from None


def on_join(
    registry: SessionRegistry,
    session_id: str,
    role: Role,
    connection: RelayConnection,
) -> List[Effect]:
    """
    Bind a new connection to its role slot.

    Raises:
        SessionNotFound: If a mobile joins a token no desktop has created.
    """
    session = registry.get(session_id)
    if session is None:
        if role is Role.MOBILE:
            raise SessionNotFound()
        session = registry.create(session_id)

    effects: List[Effect] = []

    existing = session.slot(role)
    if existing is not None and existing is not connection and existing.is_open:
        logger.info(f"Replacing {existing!r} with {connection!r}")
        effects.append(CloseEffect(
            existing, ReplacedBySibling.close_code, ReplacedBySibling.reason
        ))
        # The replaced connection leaves without running the disconnect path
        existing.mark_closed()
        existing.released = True

    session.assign(role, connection)

    partner = session.live_partner(role)
    if partner is not None:
        message = status_envelope(StatusEvent.PARTNER_CONNECTED)
        effects.append(SendEffect(partner, message))
        effects.append(SendEffect(connection, message))
        logger.info(f"Paired [{connection.short_session}]")

    return effects


def on_leave(
    registry: SessionRegistry,
    session_id: str,
    role: Role,
    connection: RelayConnection,
) -> List[Effect]:
    """
    Run the disconnect path for a connection that closed or timed out.

    A connection that is no longer in its slot (replaced, or its session
    expired) has nothing to release. In particular a replaced connection
    closing does not send `partner_disconnected`: its partner already got
    `partner_connected` for the newcomer, and announcing a disconnect for a
    slot that is occupied would tell it the wrong thing.
    """
    session = registry.get(session_id)
    if session is None or not session.clear_if_match(role, connection):
        return []

    effects: List[Effect] = []
    remaining = session.live_partner(role)
    if remaining is not None:
        effects.append(SendEffect(
            remaining, status_envelope(StatusEvent.PARTNER_DISCONNECTED)
        ))

    if session.is_empty:
        registry.remove(session_id)

    return effects


def expire_sessions(registry: SessionRegistry, ttl_seconds: float) -> List[Effect]:
    """
    Remove every session older than the TTL.

    Live role connections are closed with a normal closure and marked
    closed and released, so their later transport close is a no-op.
    """
    now = registry.now()
    effects: List[Effect] = []

    for session_id, session in registry.snapshot().items():
        try:
            expired = session.age_seconds(now) > ttl_seconds
        except Exception as e:
            logger.warning(f"Dropping malformed session [{session_id[:8]}]: {e}")
            registry.remove(session_id)
            continue

        if not expired:
            continue

        for role in Role:
            conn = session.slot(role)
            if conn is not None and conn.is_open:
                effects.append(CloseEffect(conn, CloseCode.NORMAL, "Session expired"))
            if conn is not None:
                conn.mark_closed()
                conn.released = True
        registry.remove(session_id)
        logger.info(f"Session expired [{session_id[:8]}]")

    return effects
