"""Tests for protocol message helpers."""

from b3d4_client.protocol import (
    DEFAULT_PREVIEW,
    build_preview_start,
    build_request,
    build_scan_process,
    build_scan_release,
    build_station_select,
    error_payload,
    is_ok,
    request_key,
    response_key,
)


def test_message_keys():
    assert request_key() == "request:"
    assert request_key("camera_frame") == "request:camera_frame"
    assert response_key("connect") == "response:connect"


def test_is_ok():
    assert is_ok({"status": "OK"})
    assert not is_ok({"status": "ERROR"})
    assert not is_ok({})


def test_error_payload():
    assert error_payload("timed out", session_id="s") == {
        "status": "ERROR",
        "message": "timed out",
        "session_id": "s",
    }


def test_build_request():
    assert build_request("session_init") == {"request": "session_init"}


def test_build_station_select():
    assert build_station_select("A") == {"request": "station_select", "station_id": "A"}


def test_build_preview_start_defaults():
    """Test preview_start carries the default preview format."""
    message = build_preview_start()

    assert message["request"] == "preview_start"
    assert message["dimension"] == "240x320"
    assert message["tracking"] == "FACE"
    assert {k: message[k] for k in DEFAULT_PREVIEW} == DEFAULT_PREVIEW


def test_build_preview_start_overrides():
    message = build_preview_start(dimension="480x640", frames=10)

    assert message["dimension"] == "480x640"
    assert message["frames"] == 10
    assert message["format"] == "JPEG"


def test_build_scan_process():
    assert build_scan_process("scan-1", debug=True) == {
        "request": "scan_process",
        "scan_id": "scan-1",
        "type": "HEADMODEL",
        "debug": True,
    }


def test_build_scan_release():
    assert build_scan_release("scan-1") == {
        "request": "scan_release",
        "scan_id": "scan-1",
    }
