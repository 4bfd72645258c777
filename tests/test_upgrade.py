"""Tests for the upgrade router middleware."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from relay.upgrade import UpgradeRouter, is_relay_path


@pytest.fixture
def inner() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def middleware(inner) -> UpgradeRouter:
    return UpgradeRouter(inner, endpoint_path="/ws")


def test_is_relay_path():
    assert is_relay_path("/ws", "/ws")
    assert not is_relay_path("/ws/", "/ws")
    assert not is_relay_path("/socket", "/ws")
    assert is_relay_path("/relay", "/relay")


class TestUpgradeRouter:
    @pytest.mark.asyncio
    async def test_relay_upgrade_passed_through(self, middleware, inner):
        scope = {"type": "websocket", "path": "/ws"}
        receive, send = AsyncMock(), AsyncMock()

        await middleware(scope, receive, send)

        inner.assert_awaited_once_with(scope, receive, send)
        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_upgrade_refused_before_accept(self, middleware, inner):
        send = AsyncMock()

        await middleware({"type": "websocket", "path": "/other"}, AsyncMock(), send)

        inner.assert_not_awaited()
        [message] = send.await_args.args
        assert message["type"] == "websocket.close"
        assert message["code"] == 1008

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/health", "/other", "/ws"])
    async def test_http_untouched(self, middleware, inner, path):
        scope = {"type": "http", "path": path}

        await middleware(scope, AsyncMock(), AsyncMock())

        inner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lifespan_untouched(self, middleware, inner):
        await middleware({"type": "lifespan"}, AsyncMock(), AsyncMock())

        inner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_custom_endpoint(self, inner):
        middleware = UpgradeRouter(inner, endpoint_path="/relay")
        send = AsyncMock()

        await middleware({"type": "websocket", "path": "/ws"}, AsyncMock(), send)
        await middleware({"type": "websocket", "path": "/relay"}, AsyncMock(), send)

        assert inner.await_count == 1
        assert send.await_count == 1
