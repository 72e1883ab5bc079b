"""Binary frame codec for B3D4 camera frames.

Frame layout (all integers signed 32-bit little-endian)::

    +------+---------+--------------+------------+----------+------------+
    | tag  | version | frame length | msg length | msg type | JSON event |
    | 4 B  |   4 B   |     4 B      |    4 B     |   4 B    | msg length |
    +------+---------+--------------+------------+----------+------------+
    | data length | data type |            data             |
    |     4 B     |    4 B    |   event["filesize"] bytes   |
    +-------------+-----------+-----------------------------+

- The JSON event is trimmed of surrounding whitespace and control bytes.
- The payload size is taken from the ``filesize`` field of the JSON event,
  not from the data length header field. Frame length and data length are
  decoded as-is and not checked against the buffer.
"""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass
from typing import Any

_LOGGER = logging.getLogger(__name__)

HEADER_SIZE = 20
DATA_HEADER_SIZE = 8
FRAME_TAG = "gLTF"
FRAME_VERSION = 1
EVENT_MSG_TYPE = "evnt"
STATUS_BAD_JSON = "ERROR_FILE_BAD_JSON"
CAPTURE_REQUEST = "buffer_capture"

_INT32 = struct.Struct("<i")
# Whitespace plus C0 control characters, NUL included.
_TRIM_CHARS = "".join(chr(code) for code in range(0x21))


@dataclass(frozen=True, slots=True)
class Frame:
    """A decoded binary frame."""

    tag: str
    version: int
    frame_length: int
    msg_length: int
    msg_type: str
    event: Any
    data_length: int
    data_type: str
    data: memoryview

    def __repr__(self) -> str:
        return (
            f"Frame(tag={self.tag!r}, version={self.version}, "
            f"msg_type={self.msg_type!r}, data_type={self.data_type!r}, "
            f"data={len(self.data)} bytes)"
        )


@dataclass(frozen=True, slots=True)
class FrameDecodeFailure:
    """Result of a frame whose embedded event is not valid JSON."""

    error: str
    tag: str
    version: int
    frame_length: int
    msg_length: int
    msg_type: str
    status: str = STATUS_BAD_JSON


def read_int32(buffer: bytes | memoryview, offset: int) -> int:
    """Read a signed little-endian int32 at ``offset``.

    A buffer too short to hold the value is logged and read as 0.
    """
    try:
        return _INT32.unpack_from(buffer, offset)[0]
    except struct.error as err:
        _LOGGER.warning(
            "Cannot read int32 at offset %d of %d-byte buffer: %s",
            offset,
            len(buffer),
            err,
        )
        return 0


def _read_ascii(view: memoryview, start: int, size: int = 4) -> str:
    return bytes(view[start : start + size]).decode("latin-1")


def decode_frame(buffer: bytes | bytearray | memoryview) -> Frame | FrameDecodeFailure:
    """Decode one binary message into a :class:`Frame`.

    Args:
        buffer: The complete frame as received from the transport.

    Returns:
        The decoded frame, or a :class:`FrameDecodeFailure` when the embedded
        event is not valid JSON. Malformed input never raises.
    """
    view = memoryview(buffer).toreadonly()

    tag = _read_ascii(view, 0)
    version = read_int32(view, 4)
    frame_length = read_int32(view, 8)
    msg_length = read_int32(view, 12)
    msg_type = _read_ascii(view, 16)

    pos = HEADER_SIZE + max(msg_length, 0)
    try:
        text = bytes(view[HEADER_SIZE:pos]).decode("utf-8").strip(_TRIM_CHARS)
        event = json.loads(text)
    except (ValueError, RecursionError) as err:
        _LOGGER.warning("Frame %r carries invalid JSON event: %s", tag, err)
        return FrameDecodeFailure(
            error=str(err),
            tag=tag,
            version=version,
            frame_length=frame_length,
            msg_length=msg_length,
            msg_type=msg_type,
        )

    data_length = read_int32(view, pos)
    data_type = _read_ascii(view, pos + 4).replace("\x00", "")
    pos += DATA_HEADER_SIZE

    filesize = event.get("filesize") if isinstance(event, dict) else None
    if isinstance(filesize, int) and not isinstance(filesize, bool):
        data = view[pos : pos + max(filesize, 0)]
    else:
        _LOGGER.debug("Frame %r event has no usable filesize: %r", tag, filesize)
        data = view[pos:pos]

    return Frame(
        tag=tag,
        version=version,
        frame_length=frame_length,
        msg_length=msg_length,
        msg_type=msg_type,
        event=event,
        data_length=data_length,
        data_type=data_type,
        data=data,
    )


def encode_frame(
    event: dict[str, Any],
    data: bytes = b"",
    *,
    tag: str = FRAME_TAG,
    version: int = FRAME_VERSION,
    msg_type: str = EVENT_MSG_TYPE,
    data_type: str = "jpg",
) -> bytes:
    """Build a binary frame carrying ``event`` and ``data``.

    ``event`` is sent as given; callers set ``filesize`` themselves so that
    frames with inconsistent sizes can be produced as well.
    """
    message = json.dumps(event).encode("utf-8")
    data_header = _INT32.pack(len(data)) + _pad_ascii(data_type)
    frame_length = HEADER_SIZE + len(message) + len(data_header) + len(data)
    header = (
        _pad_ascii(tag)
        + _INT32.pack(version)
        + _INT32.pack(frame_length)
        + _INT32.pack(len(message))
        + _pad_ascii(msg_type)
    )
    return header + message + data_header + data


def _pad_ascii(value: str) -> bytes:
    return value.encode("latin-1")[:4].ljust(4, b"\x00")


def is_capture_event(event: Any) -> bool:
    """Return True when a frame event answers a buffer capture."""
    return isinstance(event, dict) and event.get("request") == CAPTURE_REQUEST
