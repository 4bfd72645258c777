"""
Session Reaper: periodic expiry of old sessions.

Bounds memory held by abandoned or never-joined sessions. Independent of the
heartbeat, which only notices dead transports, not sessions nobody uses.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .config import RelayConfig
from .pairing import expire_sessions
from .sessions import SessionRegistry
from .types import Effect


logger = logging.getLogger("relay.reaper")


class SessionReaper:
    """Expires sessions older than the configured TTL on a fixed interval."""

    def __init__(
        self,
        registry: SessionRegistry,
        config: Optional[RelayConfig] = None,
        apply_effects: Optional[Callable[[List[Effect]], Awaitable[None]]] = None,
    ):
        self.config = config or RelayConfig()
        self._registry = registry
        self._apply_effects = apply_effects

        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._reap_loop())

    def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _reap_loop(self) -> None:
        interval = self.config.reap_interval_ms / 1000

        while self._running:
            try:
                await asyncio.sleep(interval)

                if not self._running:
                    break

                await self.sweep()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in reaper loop: {e}", exc_info=True)

    async def sweep(self) -> int:
        """
        Run one expiry pass.

        Returns:
            Number of sessions removed
        """
        before = self._registry.size
        effects = expire_sessions(self._registry, self.config.session_ttl_ms / 1000)
        removed = before - self._registry.size

        if effects and self._apply_effects:
            await self._apply_effects(effects)

        if removed:
            logger.info(f"Reaped {removed} expired session(s)")
        return removed
