"""Asyncio client for the B3D4 dev API."""

__version__ = "0.1.0"

from .client import B3d4Client, ConnectionState
from .dispatch import HandlerChain, MessageDispatcher
from .errors import (
    B3d4ClientError,
    B3d4ConnectionError,
    B3d4HandshakeError,
    B3d4InvalidRequest,
    B3d4RequestError,
    B3d4Timeout,
)
from .frame import Frame, FrameDecodeFailure, decode_frame, encode_frame
from .pending import PendingRequest, RequestCorrelator
from .state import SessionState, SessionView
from .transport import (
    B3d4WsClient,
    B3d4WsMessage,
    B3d4WsMessageType,
    connect_websocket,
)

__all__ = [
    "B3d4Client",
    "B3d4ClientError",
    "B3d4ConnectionError",
    "B3d4HandshakeError",
    "B3d4InvalidRequest",
    "B3d4RequestError",
    "B3d4Timeout",
    "B3d4WsClient",
    "B3d4WsMessage",
    "B3d4WsMessageType",
    "ConnectionState",
    "Frame",
    "FrameDecodeFailure",
    "HandlerChain",
    "MessageDispatcher",
    "PendingRequest",
    "RequestCorrelator",
    "SessionState",
    "SessionView",
    "__version__",
    "connect_websocket",
    "decode_frame",
    "encode_frame",
]
