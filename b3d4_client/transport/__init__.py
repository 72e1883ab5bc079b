"""Transport layer for the B3D4 client.

Components:
- ws: WebSocket connection establishment
- ws_client: WebSocket message iteration and normalization
"""

from .ws import connect_websocket
from .ws_client import B3d4WsClient, B3d4WsMessage, B3d4WsMessageType

__all__ = [
    "B3d4WsClient",
    "B3d4WsMessage",
    "B3d4WsMessageType",
    "connect_websocket",
]
