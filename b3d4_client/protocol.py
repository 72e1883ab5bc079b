"""Protocol helpers for B3D4 dev API JSON messages.

Message keys route dispatch: a class prefix (``request:``, ``response:``,
``connection:``) optionally followed by a specific name. The bare class
prefix addresses the handlers that see every message of that class.
"""

from __future__ import annotations

from typing import Any

REQUEST = "request:"
RESPONSE = "response:"
CONNECTION = "connection:"

CONNECTION_OPEN = f"{CONNECTION}open"
CONNECTION_CLOSE = f"{CONNECTION}close"

CONNECT_REQUEST = "connect"
CAMERA_SNAP = "camera_snap"
CAMERA_FRAME = "camera_frame"

STATUS_OK = "OK"
STATUS_ERROR = "ERROR"

DEFAULT_PREVIEW: dict[str, Any] = {
    "source": "COLOR",
    "format": "JPEG",
    "dimension": "240x320",
    "camera": "c",
    "frames": 0,
    "tracking": "FACE",
}
SCAN_PROCESS_TYPE = "HEADMODEL"


def request_key(name: str = "") -> str:
    return f"{REQUEST}{name}"


def response_key(name: str = "") -> str:
    return f"{RESPONSE}{name}"


def is_ok(message: dict[str, Any]) -> bool:
    """Return True when a response reports success."""
    return message.get("status") == STATUS_OK


def error_payload(message: str, **extra: Any) -> dict[str, Any]:
    """Build the error object a failed request is rejected with."""
    return {"status": STATUS_ERROR, "message": message, **extra}


def build_request(name: str, **fields: Any) -> dict[str, Any]:
    """Build a client request message.

    The session id is stamped on by the client when the message is sent.
    """
    return {"request": name, **fields}


def build_station_select(station_id: str) -> dict[str, Any]:
    return build_request("station_select", station_id=station_id)


def build_preview_start(**overrides: Any) -> dict[str, Any]:
    """Build a preview_start request, defaulting to a 240x320 JPEG face preview."""
    return build_request("preview_start", **{**DEFAULT_PREVIEW, **overrides})


def build_scan_process(scan_id: str, *, debug: bool = False) -> dict[str, Any]:
    return build_request(
        "scan_process",
        scan_id=scan_id,
        type=SCAN_PROCESS_TYPE,
        debug=debug,
    )


def build_scan_release(scan_id: str) -> dict[str, Any]:
    return build_request("scan_release", scan_id=scan_id)
