"""Opening the dev API WebSocket.

The dev API server listens on a plain ``ws://`` (or ``wss://``) URL and
multiplexes JSON control messages with binary camera frames on the one
connection. A full-resolution capture arrives as a single binary message,
so the incoming message size limit is disabled.
"""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    B3d4ConnectionError,
    B3d4HandshakeError,
    B3d4Timeout,
)

# Seconds to wait for the server's close frame
CLOSE_TIMEOUT = 5


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Open a WebSocket to the dev API server.

    Args:
        url: Complete server URL including scheme and port,
            e.g. ``ws://192.168.1.20:3000``
        ping_interval: Keepalive ping interval (seconds), None disables
        timeout: Seconds allowed for the TCP connect and the handshake

    Raises:
        B3d4Timeout: The connection was not established in time
        B3d4HandshakeError: The URL is not a WebSocket URL or the server
            refused the upgrade
        B3d4ConnectionError: The server could not be reached
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=CLOSE_TIMEOUT,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise B3d4Timeout(f"Timed out connecting to {url}") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise B3d4HandshakeError(f"WebSocket handshake with {url} failed") from err
    except (OSError, WebSocketException) as err:
        raise B3d4ConnectionError(f"Cannot reach {url}") from err
