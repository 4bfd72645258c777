"""
Configuration and logging setup for the Point and Prompt relay server.

Every knob comes from the environment (a local .env is honoured) and has a
default that works for a development checkout. Logging is one console
handler shared by the relay loggers and uvicorn, tagged per component.
"""

import os
import sys
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple
from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# Logging
# =============================================================================

class LogColors:
    """ANSI escape codes used by the console formatter and the banner."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GREY = "\033[90m"


# Loggers under "relay." get a short tag and a colour; anything else is OTHER
COMPONENTS = {
    "relay": ("SERVER", LogColors.CYAN),
    "relay.sessions": ("SESSIONS", LogColors.GREEN),
    "relay.pairing": ("PAIRING", LogColors.MAGENTA),
    "relay.router": ("ROUTER", LogColors.CYAN),
    "relay.heartbeat": ("HEARTBEAT", LogColors.YELLOW),
    "relay.reaper": ("REAPER", LogColors.MAGENTA),
    "relay.transport": ("TRANSPORT", LogColors.GREY),
    "relay.ask": ("ASK", LogColors.BLUE),
    "uvicorn": ("UVICORN", LogColors.GREY),
}

LEVELS = {
    logging.DEBUG: ("DBG", LogColors.GREY),
    logging.INFO: ("INF", LogColors.GREEN),
    logging.WARNING: ("WRN", LogColors.YELLOW),
    logging.ERROR: ("ERR", LogColors.RED),
    logging.CRITICAL: ("CRT", LogColors.RED + LogColors.BOLD),
}


def component_for(name: str) -> Tuple[str, str]:
    """Tag and colour for a logger name, falling back to its closest parent."""
    while name:
        if name in COMPONENTS:
            return COMPONENTS[name]
        name = name.rpartition(".")[0]
    return ("OTHER", LogColors.WHITE)


class ColoredFormatter(logging.Formatter):
    """`HH:MM:SS LVL COMPONENT message`, coloured when writing to a terminal."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        tag, tag_color = component_for(record.name)
        level, level_color = LEVELS.get(record.levelno, ("???", LogColors.WHITE))
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        message = record.getMessage()

        if self.use_colors:
            C = LogColors
            line = (
                f"{C.DIM}{timestamp}{C.RESET} {level_color}{level}{C.RESET} "
                f"{tag_color}{tag:<10}{C.RESET} {message}"
            )
        else:
            line = f"{timestamp} {level} {tag:<10} {message}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int = logging.INFO, use_colors: bool = True) -> logging.Logger:
    """
    Route the relay and uvicorn loggers to one coloured console handler.

    Returns:
        The "relay" logger
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # uvicorn installs its own handlers; send its errors through ours instead
    uvicorn_error = logging.getLogger("uvicorn.error")
    uvicorn_error.handlers = []
    uvicorn_error.propagate = True
    logging.getLogger("uvicorn").setLevel(logging.WARNING)

    for noisy in ("httpx", "httpcore", "openai", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    relay_logger = logging.getLogger("relay")
    relay_logger.setLevel(level)
    return relay_logger


def print_startup_banner(server: "ServerConfig", relay: "RelayConfig", llm_ready: bool) -> None:
    """Print the listener summary."""
    C = LogColors
    https_line = (
        f"  {C.MAGENTA}▸ HTTPS:{C.WHITE}   https://{server.host}:{server.https_port}\n"
        if server.tls_enabled
        else f"  {C.DIM}▸ HTTPS:   disabled (set SSL_CERTFILE and SSL_KEYFILE){C.RESET}\n"
    )
    llm_line = "configured" if llm_ready else "not configured - set LLM_API_KEY"
    banner = (
        f"\n{C.CYAN}{C.BOLD}Point and Prompt relay{C.RESET}\n"
        f"  {C.GREEN}▸ Server:{C.WHITE}  http://{server.host}:{server.port}\n"
        f"{https_line}"
        f"  {C.CYAN}▸ Relay:{C.WHITE}   ws://{server.host}:{server.port}{relay.endpoint_path}"
        f"?role=desktop|mobile&session=<token>\n"
        f"  {C.YELLOW}▸ LLM:{C.WHITE}     {llm_line}\n"
        f"{C.RESET}"
    )
    print(banner)


logger = setup_logging(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
)



# =============================================================================
# Server Configuration
# =============================================================================

@dataclass
class ServerConfig:
    """Listener configuration."""
    host: str = "0.0.0.0"
    port: int = 3001
    https_port: Optional[int] = None  # Defaults to port + 1

    # TLS listener is enabled only when both files are given
    ssl_certfile: Optional[str] = None
    ssl_keyfile: Optional[str] = None

    # CORS settings for /api
    cors_origins: list = field(default_factory=lambda: ["*"])

    log_level: str = "INFO"

    def __post_init__(self):
        if self.https_port is None:
            self.https_port = self.port + 1

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_certfile and self.ssl_keyfile)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Create config from environment variables."""
        port = int(os.getenv("PORT", "3001"))
        https_port = os.getenv("HTTPS_PORT")
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            https_port=int(https_port) if https_port else port + 1,
            ssl_certfile=os.getenv("SSL_CERTFILE") or None,
            ssl_keyfile=os.getenv("SSL_KEYFILE") or None,
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class RelayConfig:
    """Pairing relay configuration."""
    endpoint_path: str = "/ws"

    # Timing (in milliseconds)
    session_ttl_ms: int = 30 * 60 * 1000  # 30 minutes
    reap_interval_ms: int = 5 * 60 * 1000  # 5 minutes

    @classmethod
    def from_env(cls) -> "RelayConfig":
        return cls(
            endpoint_path=os.getenv("RELAY_WS_PATH", "/ws"),
            session_ttl_ms=int(os.getenv("SESSION_TTL_MS", str(30 * 60 * 1000))),
            reap_interval_ms=int(os.getenv("SESSION_REAP_INTERVAL_MS", str(5 * 60 * 1000))),
        )


@dataclass
class HeartbeatConfig:
    """Heartbeat/keepalive configuration."""
    interval_ms: int = 15_000  # Probe every open connection this often

    @classmethod
    def from_env(cls) -> "HeartbeatConfig":
        return cls(
            interval_ms=int(os.getenv("HEARTBEAT_INTERVAL_MS", "15000")),
        )


@dataclass
class LLMConfig:
    """Upstream chat model for the ask endpoint."""
    api_key: Optional[str] = None
    model: str = "google/gemini-flash-1.5"
    base_url: str = "https://openrouter.ai/api/v1"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            api_key=os.getenv("LLM_API_KEY") or None,
            model=os.getenv("LLM_MODEL", "google/gemini-flash-1.5"),
            base_url=os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1"),
        )


# =============================================================================
# Composite Configuration
# =============================================================================

@dataclass
class Config:
    """Complete application configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Create complete config from environment."""
        return cls(
            server=ServerConfig.from_env(),
            relay=RelayConfig.from_env(),
            heartbeat=HeartbeatConfig.from_env(),
            llm=LLMConfig.from_env(),
        )
