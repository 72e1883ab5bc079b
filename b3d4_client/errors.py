"""Client error types for B3D4 dev API interactions."""

from __future__ import annotations

from typing import Any


class B3d4ClientError(Exception):
    """Base error for B3D4 client failures."""


class B3d4Timeout(B3d4ClientError):
    """Timeout while opening the device connection."""


class B3d4ConnectionError(B3d4ClientError):
    """Network connection to the device failed."""


class B3d4HandshakeError(B3d4ClientError):
    """WebSocket handshake failed."""


class B3d4RequestError(B3d4ClientError):
    """A request was rejected, timed out, or lost with its connection.

    The ``payload`` is the error object reported for the request, e.g.
    ``{"status": "ERROR", "message": "timed out"}`` or the device's own
    ERROR response.
    """

    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__(payload.get("message") or "request failed")
        self.payload = payload

    @property
    def status(self) -> str:
        return str(self.payload.get("status", "ERROR"))

    @property
    def message(self) -> str:
        return str(self)


class B3d4InvalidRequest(B3d4RequestError):
    """Caller passed an invalid argument to a public operation."""

    def __init__(self, message: str) -> None:
        super().__init__({"status": "ERROR", "message": message})
