"""
Relay error taxonomy.

Every error is scoped to a single connection or session: the manager turns
it into a WebSocket close with the code carried by the exception class.
"""

from .types import CloseCode


class RelayError(Exception):
    """Base class for relay failures that end a single connection."""

    close_code: int = CloseCode.INTERNAL_ERROR
    reason: str = "relay error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.reason)


class InvalidHandshake(RelayError):
    """
    Malformed join request.

    Raised when `role` or `session` is missing, or `role` is not one of the
    two known roles. Always a client protocol violation; no retry.
    """

    close_code = CloseCode.INVALID_HANDSHAKE
    reason = "Invalid role or session"


class SessionNotFound(RelayError):
    """
    Mobile joined a token no desktop has created.

    Recoverable: the client may retry once the desktop has connected.
    """

    close_code = CloseCode.SESSION_NOT_FOUND
    reason = "Session not found"


class ReplacedBySibling(RelayError):
    """A newer connection took over the same role in the same session."""

    close_code = CloseCode.REPLACED
    reason = "Replaced by new connection"


class LivenessTimeout(RelayError):
    """Connection stopped acknowledging heartbeat probes."""

    close_code = CloseCode.INTERNAL_ERROR
    reason = "terminated"
