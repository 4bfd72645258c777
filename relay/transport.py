"""
Transport utilities for relay WebSocket sending and closing.

Every helper swallows the errors a closing socket raises and reports success
as a bool, so a dying peer never takes down the connection that was talking
to it.
"""

import logging
from typing import Any, Union

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState


logger = logging.getLogger("relay.transport")


async def send_json(ws: WebSocket, message: dict) -> bool:
    """
    Send a JSON envelope to a WebSocket client.

    Args:
        ws: WebSocket connection
        message: Envelope to send

    Returns:
        True if sent successfully, False otherwise
    """
    try:
        await ws.send_json(message)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Cannot send - WebSocket closed: {e}")
        return False
    except Exception as e:
        logger.error(f"Failed to send message: {e}")
        return False


async def send_frame(ws: WebSocket, frame: Union[str, bytes]) -> bool:
    """
    Forward a raw frame, keeping its text/binary kind.

    Returns:
        True if sent successfully, False otherwise
    """
    try:
        if isinstance(frame, bytes):
            await ws.send_bytes(frame)
        else:
            await ws.send_text(frame)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Cannot forward - WebSocket closed: {e}")
        return False
    except Exception as e:
        logger.error(f"Failed to forward frame: {e}")
        return False


async def close_websocket(ws: Any, code: int, reason: str = "") -> bool:
    """
    Close a WebSocket with a close code.

    Already-closed sockets are left alone.

    Returns:
        True if a close frame was sent
    """
    if getattr(ws, "application_state", None) == WebSocketState.DISCONNECTED:
        return False
    try:
        await ws.close(code=code, reason=reason)
        return True
    except Exception as e:
        logger.debug(f"Error closing WebSocket ({code}): {e}")
        return False
