"""Tests for the role-pairing state transitions."""

from __future__ import annotations

import pytest

from relay.errors import InvalidHandshake, SessionNotFound
from relay.pairing import expire_sessions, on_join, on_leave, parse_handshake
from relay.types import (
    CloseCode,
    CloseEffect,
    Role,
    SendEffect,
    StatusEvent,
    status_envelope,
)

CONNECTED = status_envelope(StatusEvent.PARTNER_CONNECTED)
DISCONNECTED = status_envelope(StatusEvent.PARTNER_DISCONNECTED)
TOKEN = "session-token-1"


def sends_to(effects, conn):
    return [e.message for e in effects if isinstance(e, SendEffect) and e.target is conn]


def closes(effects):
    return [e for e in effects if isinstance(e, CloseEffect)]


class TestParseHandshake:
    @pytest.mark.parametrize("role", ["desktop", "mobile"])
    def test_valid_roles(self, role):
        assert parse_handshake(role, TOKEN) is Role(role)

    @pytest.mark.parametrize(
        "role, session",
        [
            (None, TOKEN),
            ("desktop", None),
            ("", TOKEN),
            ("desktop", ""),
            ("tablet", TOKEN),
            ("DESKTOP", TOKEN),
        ],
    )
    def test_invalid_handshake(self, role, session):
        with pytest.raises(InvalidHandshake) as exc:
            parse_handshake(role, session)
        assert exc.value.close_code == CloseCode.INVALID_HANDSHAKE


class TestJoin:
    def test_desktop_creates_session(self, registry, make_conn, clock):
        desktop = make_conn(role=Role.DESKTOP)

        effects = on_join(registry, TOKEN, Role.DESKTOP, desktop)

        assert effects == []
        session = registry.get(TOKEN)
        assert session.desktop is desktop
        assert session.mobile is None
        assert session.created_at == clock()

    def test_mobile_without_desktop_is_rejected(self, registry, make_conn):
        with pytest.raises(SessionNotFound) as exc:
            on_join(registry, TOKEN, Role.MOBILE, make_conn(role=Role.MOBILE))

        assert exc.value.close_code == CloseCode.SESSION_NOT_FOUND
        assert TOKEN not in registry

    def test_mobile_after_desktop_pairs_both(self, registry, make_conn):
        desktop = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)

        effects = on_join(registry, TOKEN, Role.MOBILE, mobile)

        assert sends_to(effects, desktop) == [CONNECTED]
        assert sends_to(effects, mobile) == [CONNECTED]
        assert closes(effects) == []

    def test_desktop_rejoining_after_mobile_pairs_both(self, registry, make_conn):
        first = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, first)
        on_join(registry, TOKEN, Role.MOBILE, mobile)
        on_leave(registry, TOKEN, Role.DESKTOP, first)

        desktop = make_conn(role=Role.DESKTOP)
        effects = on_join(registry, TOKEN, Role.DESKTOP, desktop)

        assert sends_to(effects, desktop) == [CONNECTED]
        assert sends_to(effects, mobile) == [CONNECTED]

    def test_same_role_join_replaces_live_connection(self, registry, make_conn):
        old = make_conn(role=Role.DESKTOP)
        new = make_conn(role=Role.DESKTOP)
        on_join(registry, TOKEN, Role.DESKTOP, old)

        effects = on_join(registry, TOKEN, Role.DESKTOP, new)

        [close] = closes(effects)
        assert close.target is old
        assert close.code == CloseCode.REPLACED
        assert registry.get(TOKEN).desktop is new
        assert not old.is_open
        assert old.released

    def test_rejoin_with_same_connection_does_not_close_it(self, registry, make_conn):
        desktop = make_conn(role=Role.DESKTOP)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)

        effects = on_join(registry, TOKEN, Role.DESKTOP, desktop)

        assert closes(effects) == []

    def test_replacement_keeps_one_connection_per_slot(self, registry, make_conn):
        conns = [make_conn(role=Role.MOBILE) for _ in range(5)]
        on_join(registry, TOKEN, Role.DESKTOP, make_conn(role=Role.DESKTOP))

        for conn in conns:
            on_join(registry, TOKEN, Role.MOBILE, conn)

        live = [c for c in conns if c.is_open]
        assert live == [conns[-1]]
        assert registry.get(TOKEN).mobile is conns[-1]

    def test_replacement_announces_partner_to_new_connection(self, registry, make_conn):
        desktop = make_conn(role=Role.DESKTOP)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)
        on_join(registry, TOKEN, Role.MOBILE, make_conn(role=Role.MOBILE))

        replacement = make_conn(role=Role.MOBILE)
        effects = on_join(registry, TOKEN, Role.MOBILE, replacement)

        assert sends_to(effects, replacement) == [CONNECTED]
        assert sends_to(effects, desktop) == [CONNECTED]


class TestLeave:
    def test_partner_notified_once_and_session_kept(self, registry, make_conn):
        desktop = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)
        on_join(registry, TOKEN, Role.MOBILE, mobile)

        mobile.mark_closed()
        effects = on_leave(registry, TOKEN, Role.MOBILE, mobile)

        assert sends_to(effects, desktop) == [DISCONNECTED]
        session = registry.get(TOKEN)
        assert session is not None
        assert session.desktop is desktop
        assert session.mobile is None

    def test_last_leave_removes_session(self, registry, make_conn):
        desktop = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)
        on_join(registry, TOKEN, Role.MOBILE, mobile)

        on_leave(registry, TOKEN, Role.MOBILE, mobile)
        on_leave(registry, TOKEN, Role.DESKTOP, desktop)

        assert TOKEN not in registry
        with pytest.raises(SessionNotFound):
            on_join(registry, TOKEN, Role.MOBILE, make_conn(role=Role.MOBILE))

    def test_lone_desktop_leaving_removes_session(self, registry, make_conn):
        desktop = make_conn(role=Role.DESKTOP)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)

        effects = on_leave(registry, TOKEN, Role.DESKTOP, desktop)

        assert effects == []
        assert TOKEN not in registry

    def test_replaced_connection_leaving_is_noop(self, registry, make_conn):
        old = make_conn(role=Role.DESKTOP)
        new = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, old)
        on_join(registry, TOKEN, Role.MOBILE, mobile)
        on_join(registry, TOKEN, Role.DESKTOP, new)

        effects = on_leave(registry, TOKEN, Role.DESKTOP, old)

        assert effects == []
        assert registry.get(TOKEN).desktop is new

    def test_leave_on_unknown_session_is_noop(self, registry, make_conn):
        assert on_leave(registry, "missing", Role.DESKTOP, make_conn()) == []


class TestExpire:
    def test_expired_session_closed_and_removed(self, registry, make_conn, clock):
        desktop = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)
        on_join(registry, TOKEN, Role.MOBILE, mobile)

        clock.advance(31 * 60)
        effects = expire_sessions(registry, ttl_seconds=30 * 60)

        assert {e.target for e in closes(effects)} == {desktop, mobile}
        assert all(e.code == CloseCode.NORMAL for e in closes(effects))
        assert TOKEN not in registry
        assert desktop.released and mobile.released

    def test_fresh_session_survives(self, registry, make_conn, clock):
        on_join(registry, TOKEN, Role.DESKTOP, make_conn())

        clock.advance(29 * 60)

        assert expire_sessions(registry, ttl_seconds=30 * 60) == []
        assert TOKEN in registry

    def test_abandoned_empty_session_removed(self, registry, clock):
        registry.create(TOKEN)

        clock.advance(31 * 60)
        effects = expire_sessions(registry, ttl_seconds=30 * 60)

        assert effects == []
        assert TOKEN not in registry

    def test_leave_after_expiry_does_not_notify(self, registry, make_conn, clock):
        desktop = make_conn(role=Role.DESKTOP)
        mobile = make_conn(role=Role.MOBILE)
        on_join(registry, TOKEN, Role.DESKTOP, desktop)
        on_join(registry, TOKEN, Role.MOBILE, mobile)
        clock.advance(31 * 60)
        expire_sessions(registry, ttl_seconds=30 * 60)

        assert on_leave(registry, TOKEN, Role.MOBILE, mobile) == []

    def test_malformed_entry_removed_without_aborting_sweep(self, registry, make_conn, clock):
        broken = registry.create("broken")
        broken.created_at = None
        registry.create("old")

        clock.advance(31 * 60)
        expire_sessions(registry, ttl_seconds=30 * 60)

        assert "broken" not in registry
        assert "old" not in registry
