"""WebSocket client wrapper for the B3D4 dev API."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from aiohttp import WSMsgType
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from ..errors import B3d4ClientError, B3d4ConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

ABNORMAL_CLOSURE = 1006
NORMAL_CLOSURE = 1000


class B3d4WsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    BINARY = "binary"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class B3d4WsMessage:
    """Normalized WebSocket message payload.

    CLOSED and ERROR messages carry the close details as
    ``{"code": int, "reason": str, "was_clean": bool}``.
    """

    type: B3d4WsMessageType
    data: str | bytes | dict[str, Any] | None = None


def close_details(code: int | None, reason: str = "", *, was_clean: bool) -> dict[str, Any]:
    """Build close event details in the shape handlers receive."""
    return {
        "code": ABNORMAL_CLOSURE if code is None else code,
        "reason": reason,
        "was_clean": was_clean,
    }


class B3d4WsClient:
    """Wrapper around a websockets (or aiohttp) connection.

    Args:
        ws: An already-open connection to wrap. ``connect()`` opens one
            with the websockets library otherwise.
    """

    def __init__(self, ws: Any = None) -> None:
        self._ws: Any = ws

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the dev API websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket."""
        if self._ws is None:
            raise B3d4ConnectionError("WebSocket is not connected")
        await self._ws.send(json.dumps(payload))

    def __aiter__(self) -> AsyncIterator[B3d4WsMessage]:
        if self._ws is None:
            raise B3d4ConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[B3d4WsMessage]:
        if self._ws is None:
            raise B3d4ConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized: B3d4WsMessage | None = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
                if normalized.type in (
                    B3d4WsMessageType.CLOSED,
                    B3d4WsMessageType.ERROR,
                ):
                    return
        except ConnectionClosed as err:
            yield B3d4WsMessage(
                B3d4WsMessageType.CLOSED,
                close_details(
                    err.rcvd.code if err.rcvd is not None else None,
                    err.rcvd.reason if err.rcvd is not None else "",
                    was_clean=isinstance(err, ConnectionClosedOK),
                ),
            )
        except Exception as err:
            yield B3d4WsMessage(
                B3d4WsMessageType.ERROR,
                close_details(None, str(err), was_clean=False),
            )
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield B3d4WsMessage(
                B3d4WsMessageType.CLOSED,
                close_details(
                    getattr(self._ws, "close_code", None) or NORMAL_CLOSURE,
                    getattr(self._ws, "close_reason", None) or "",
                    was_clean=True,
                ),
            )

    @staticmethod
    def _normalize_message(msg: Any) -> B3d4WsMessage | None:
        """Normalize backend-specific frames into B3d4WsMessage."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return B3d4WsMessage(B3d4WsMessageType.BINARY, bytes(msg))
        if isinstance(msg, str):
            return B3d4WsMessage(B3d4WsMessageType.TEXT, msg)

        msg_type = getattr(msg, "type", None)
        if msg_type is not None:
            normalized_type: B3d4WsMessageType | None = (
                B3d4WsClient._map_aiohttp_type(msg_type)
            )
            if normalized_type is None:
                return None
            data = getattr(msg, "data", None)
            if normalized_type is B3d4WsMessageType.CLOSED:
                extra = getattr(msg, "extra", None)
                return B3d4WsMessage(
                    normalized_type,
                    close_details(
                        data if isinstance(data, int) else None,
                        extra if isinstance(extra, str) else "",
                        was_clean=isinstance(data, int),
                    ),
                )
            if normalized_type is B3d4WsMessageType.ERROR:
                return B3d4WsMessage(
                    normalized_type,
                    close_details(None, str(data or ""), was_clean=False),
                )
            return B3d4WsMessage(normalized_type, data)

        # Fallback: treat unknown objects as text via their string repr
        return B3d4WsMessage(B3d4WsMessageType.TEXT, str(msg))

    @staticmethod
    def _map_aiohttp_type(msg_type: Any) -> B3d4WsMessageType | None:
        """Map aiohttp WSMsgType enums to internal message types."""
        if msg_type is WSMsgType.TEXT:
            return B3d4WsMessageType.TEXT

        if msg_type is WSMsgType.BINARY:
            return B3d4WsMessageType.BINARY

        if msg_type in {WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED}:
            return B3d4WsMessageType.CLOSED

        if msg_type is WSMsgType.ERROR:
            return B3d4WsMessageType.ERROR

        return None

    @staticmethod
    def decode_json(message: B3d4WsMessage) -> Any:
        """Decode a TEXT message payload into JSON."""
        if message.type is not B3d4WsMessageType.TEXT:
            raise B3d4ClientError("Only TEXT messages can be decoded")
        if not isinstance(message.data, str):
            raise B3d4ClientError("Message data is not a string")
        return json.loads(message.data)
