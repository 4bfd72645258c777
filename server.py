"""
Point and Prompt Relay Server

This server orchestrates:
1. WebSocket relay pairing a desktop page with a phone (Scan to Speak)
2. LLM question answering for the lab-results prototype
3. One plain HTTP listener and, when certificates are configured, one HTTPS
   listener serving the same application

Architecture:
┌─────────────────────────────────────────────────────────────┐
│                       server.py                              │
├─────────────────────────────────────────────────────────────┤
│  HTTP :PORT ──┐                                             │
│               ├──► UpgradeRouter ──► FastAPI app            │
│  HTTPS :PORT+1┘        │                                    │
│                        ▼                                    │
│  /ws?role=&session=  ──► RelayManager                       │
│                          (registry, pairing, relay,         │
│                           keepalive, reaper)                │
│  /api/ask            ──► upstream chat model                │
│  /api/health         ──► LLM + relay status                 │
└─────────────────────────────────────────────────────────────┘
"""

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from relay import Config, RelayManager, UpgradeRouter, logger
from relay.config import print_startup_banner
from relay.relay_ws import init_relay_routes, relay_websocket_endpoint
from routes import ask_router, health_router
from routes.ask import create_chat_model, init_ask_routes


# =============================================================================
# Middleware
# =============================================================================

class ApiCORSMiddleware:
    """CORS for the JSON API only; other routes never get CORS headers."""

    def __init__(self, app: ASGIApp, prefix: str = "/api", **options):
        self.app = app
        self.prefix = prefix
        self.cors = CORSMiddleware(app, **options)

    def applies_to(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.applies_to(scope["path"]):
            await self.cors(scope, receive, send)
        else:
            await self.app(scope, receive, send)


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    config: Optional[Config] = None,
    relay_manager: Optional[RelayManager] = None,
    chat_model=None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Application configuration (defaults to the environment)
        relay_manager: Relay manager to use (one is created if omitted)
        chat_model: Upstream chat model (built from config.llm if omitted)
    """
    config = config or Config.from_env()
    relay_manager = relay_manager or RelayManager(
        relay_config=config.relay,
        heartbeat_config=config.heartbeat,
    )
    if chat_model is None:
        chat_model = create_chat_model(config.llm)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        relay_manager.start()
        logger.info(f"Relay active on {config.relay.endpoint_path}")

        yield

        logger.info("Shutting down...")
        await relay_manager.close_all()
        logger.info("Goodbye! 👋")

    app = FastAPI(
        title="Point and Prompt Relay",
        description="Desktop/mobile WebSocket relay and LLM proxy",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.relay_manager = relay_manager

    app.add_middleware(
        ApiCORSMiddleware,
        prefix="/api",
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(UpgradeRouter, endpoint_path=config.relay.endpoint_path)

    init_relay_routes(relay_manager)
    init_ask_routes(chat_model)

    app.add_api_websocket_route(config.relay.endpoint_path, relay_websocket_endpoint)
    app.include_router(health_router)
    app.include_router(ask_router)

    return app


# =============================================================================
# Listeners
# =============================================================================

def build_listeners(app: FastAPI, config: Config) -> List[uvicorn.Server]:
    """
    One uvicorn server per listening endpoint, all serving the same app.

    Only the first listener runs the lifespan, so the relay manager is
    started and stopped exactly once.
    """
    server_config = config.server
    common = dict(
        log_level="warning",  # Reduce Uvicorn noise, our logger handles it
        access_log=False,
        **app.state.relay_manager.heartbeat.listener_options(),
    )

    listeners = [
        uvicorn.Server(uvicorn.Config(
            app,
            host=server_config.host,
            port=server_config.port,
            lifespan="on",
            **common,
        ))
    ]

    if server_config.tls_enabled:
        listeners.append(uvicorn.Server(uvicorn.Config(
            app,
            host=server_config.host,
            port=server_config.https_port,
            ssl_certfile=server_config.ssl_certfile,
            ssl_keyfile=server_config.ssl_keyfile,
            lifespan="off",
            **common,
        )))

    return listeners


async def serve(config: Config) -> None:
    """Run every listener until shutdown."""
    app = create_app(config)
    print_startup_banner(config.server, config.relay, config.llm.configured)
    await asyncio.gather(*(listener.serve() for listener in build_listeners(app, config)))


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    asyncio.run(serve(Config.from_env()))


if __name__ == "__main__":
    main()
