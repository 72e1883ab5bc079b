"""Tests for session state and its built-in handlers."""

from __future__ import annotations

import pytest

from b3d4_client.state import (
    SESSION_HANDLERS,
    SessionState,
    SessionView,
    find_station,
)

STATIONS = [{"id": "A", "name": "front"}, {"id": "B", "name": "side"}]


def apply(key: str, message: dict, state: SessionState) -> None:
    SESSION_HANDLERS[key](message, state)


def test_initial_state():
    """Test a new session is empty."""
    state = SessionState()

    assert state.session_id is None
    assert state.station_list == []
    assert state.current_station is None
    assert state.is_previewing is False


def test_reset():
    """Test reset restores every field."""
    state = SessionState("s1", list(STATIONS), STATIONS[0], True)

    state.reset()

    assert state == SessionState()


def test_connect_sets_session_id():
    state = SessionState()

    apply("response:connect", {"status": "OK", "session_id": "s1"}, state)

    assert state.session_id == "s1"


def test_connect_error_keeps_session_id():
    state = SessionState()

    apply("response:connect", {"status": "ERROR", "session_id": "s1"}, state)

    assert state.session_id is None


def test_station_list():
    state = SessionState()

    apply("response:station_list", {"status": "OK", "stations": STATIONS}, state)

    assert state.station_list == STATIONS


def test_station_select():
    """Test selecting a known station picks its record."""
    state = SessionState(station_list=list(STATIONS))

    apply("response:station_select", {"status": "OK", "station_id": "B"}, state)

    assert state.current_station == {"id": "B", "name": "side"}


def test_station_select_unknown(caplog):
    """Test selecting an unlisted station clears the selection."""
    state = SessionState(station_list=list(STATIONS), current_station=STATIONS[0])

    apply("response:station_select", {"status": "OK", "station_id": "Z"}, state)

    assert state.current_station is None
    assert "not in the station list" in caplog.text


def test_station_list_keyed_by_id():
    """Test a station list keyed by station id is kept as a mapping."""
    state = SessionState()
    stations = {"A": {"name": "front"}, "B": {"name": "side"}}

    apply("response:station_list", {"status": "OK", "stations": stations}, state)
    apply("response:station_select", {"status": "OK", "station_id": "A"}, state)

    assert state.station_list == stations
    assert state.current_station == {"name": "front"}


def test_station_select_keyed_unknown(caplog):
    state = SessionState(station_list={"A": {"name": "front"}})

    apply("response:station_select", {"status": "OK", "station_id": "Z"}, state)

    assert state.current_station is None
    assert "not in the station list" in caplog.text


def test_station_select_error_ignored():
    state = SessionState(station_list=list(STATIONS), current_station=STATIONS[0])

    apply("response:station_select", {"status": "ERROR", "station_id": "B"}, state)

    assert state.current_station == STATIONS[0]


def test_preview_toggle():
    state = SessionState()

    apply("response:preview_start", {"status": "OK"}, state)
    assert state.is_previewing is True

    apply("response:preview_stop", {"status": "ERROR"}, state)
    assert state.is_previewing is True

    apply("response:preview_stop", {"status": "OK"}, state)
    assert state.is_previewing is False


def test_find_station_by_station_id_field():
    stations = [{"station_id": "X"}]

    assert find_station(stations, "X") == {"station_id": "X"}
    assert find_station(stations, None) is None


def test_find_station_in_mapping():
    stations = {"A": {"name": "front"}}

    assert find_station(stations, "A") == {"name": "front"}
    assert find_station(stations, "Z") is None
    assert find_station(stations, ["A"]) is None


class TestSessionView:
    """Tests for the read-only session view."""

    def test_reflects_state(self):
        """Test the view follows later state changes."""
        state = SessionState()
        view = SessionView(state)

        state.session_id = "s2"
        state.station_list = list(STATIONS)

        assert view.session_id == "s2"
        assert view.station_list == tuple(STATIONS)

    def test_is_read_only(self):
        """Test the view rejects writes."""
        view = SessionView(SessionState())

        with pytest.raises(AttributeError):
            view.session_id = "hijack"  # type: ignore[misc]
        with pytest.raises(AttributeError):
            view.is_previewing = True  # type: ignore[misc]

    def test_station_list_copy(self):
        """Test the returned station list cannot alter the session."""
        state = SessionState(station_list=list(STATIONS))

        stations = SessionView(state).station_list

        assert isinstance(stations, tuple)
        assert state.station_list == STATIONS

    def test_keyed_station_list_is_read_only(self):
        """Test a keyed station list is exposed as a read-only copy."""
        state = SessionState(station_list={"A": {"name": "front"}})

        stations = SessionView(state).station_list

        assert stations == {"A": {"name": "front"}}
        with pytest.raises(TypeError):
            stations["B"] = {}  # type: ignore[index]
        assert list(state.station_list) == ["A"]
