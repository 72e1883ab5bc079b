"""Per-connection session state and the built-in handlers that maintain it."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .protocol import is_ok, response_key

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionState:
    """Mutable session record owned by one client.

    Only the built-in response handlers below write to it.
    """

    session_id: str | None = None
    station_list: list[Any] | dict[Any, Any] = field(default_factory=list)
    current_station: Any = None
    is_previewing: bool = False

    def reset(self) -> None:
        self.session_id = None
        self.station_list = []
        self.current_station = None
        self.is_previewing = False


class SessionView:
    """Read-only live view of a :class:`SessionState`."""

    __slots__ = ("_state",)

    def __init__(self, state: SessionState) -> None:
        self._state = state

    @property
    def session_id(self) -> str | None:
        return self._state.session_id

    @property
    def station_list(self) -> tuple[Any, ...] | Mapping[Any, Any]:
        stations = self._state.station_list
        if isinstance(stations, dict):
            return MappingProxyType(dict(stations))
        return tuple(stations)

    @property
    def current_station(self) -> Any:
        return self._state.current_station

    @property
    def is_previewing(self) -> bool:
        return self._state.is_previewing

    def __repr__(self) -> str:
        return (
            f"SessionView(session_id={self.session_id!r}, "
            f"stations={len(self._state.station_list)}, "
            f"is_previewing={self.is_previewing})"
        )


def find_station(stations: Sequence[Any] | Mapping[Any, Any], station_id: Any) -> Any:
    """Return the station record for ``station_id``.

    Servers send the station list either keyed by station id or as a list of
    records carrying an ``id`` (or ``station_id``) field.
    """
    if station_id is None:
        return None
    if isinstance(stations, Mapping):
        if not isinstance(station_id, (str, int)):
            return None
        return stations.get(station_id)
    for station in stations:
        if isinstance(station, Mapping) and station_id in (
            station.get("id"),
            station.get("station_id"),
        ):
            return station
    return None


def _on_connect(message: dict[str, Any], state: SessionState) -> None:
    if is_ok(message):
        state.session_id = message.get("session_id")


def _on_station_list(message: dict[str, Any], state: SessionState) -> None:
    if is_ok(message):
        stations = message.get("stations")
        if isinstance(stations, Mapping):
            state.station_list = dict(stations)
        else:
            state.station_list = list(stations or ())


def _on_station_select(message: dict[str, Any], state: SessionState) -> None:
    if not is_ok(message):
        return
    station_id = message.get("station_id")
    state.current_station = find_station(state.station_list, station_id)
    if state.current_station is None:
        _LOGGER.warning("Selected station %r is not in the station list", station_id)


def _on_preview_start(message: dict[str, Any], state: SessionState) -> None:
    if is_ok(message):
        state.is_previewing = True


def _on_preview_stop(message: dict[str, Any], state: SessionState) -> None:
    if is_ok(message):
        state.is_previewing = False


SESSION_HANDLERS: dict[str, Callable[[dict[str, Any], SessionState], None]] = {
    response_key("connect"): _on_connect,
    response_key("station_list"): _on_station_list,
    response_key("station_select"): _on_station_select,
    response_key("preview_start"): _on_preview_start,
    response_key("preview_stop"): _on_preview_stop,
}
