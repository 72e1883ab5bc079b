"""Connection manager for the B3D4 dev API.

This module provides the client callers use to talk to a B3D4 device
server. It handles:
- Connection lifecycle (connect / reconnect / close)
- Routing of JSON messages and binary camera frames
- Request/response correlation with optional timeouts
- Session bookkeeping through built-in message handlers

Usage:
    client = B3d4Client("ws://192.168.1.20:3000")
    client.on_server_request("camera_frame", show_frame)
    await client.connect()
    await client.list_stations(timeout=5)
    await client.select_station("A")
    await client.start_preview()
    await client.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .dispatch import Handler, MessageDispatcher
from .errors import B3d4ClientError, B3d4InvalidRequest, B3d4RequestError
from .frame import FrameDecodeFailure, decode_frame, is_capture_event
from .pending import RequestCorrelator
from .protocol import (
    CAMERA_FRAME,
    CAMERA_SNAP,
    CONNECT_REQUEST,
    CONNECTION_CLOSE,
    CONNECTION_OPEN,
    STATUS_ERROR,
    build_preview_start,
    build_request,
    build_scan_process,
    build_scan_release,
    build_station_select,
    error_payload,
    request_key,
    response_key,
)
from .state import SESSION_HANDLERS, SessionState, SessionView
from .transport.ws_client import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    B3d4WsClient,
    B3d4WsMessage,
    B3d4WsMessageType,
    close_details,
)

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of the client's transport."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class B3d4Client:
    """Client for one B3D4 dev API connection.

    Handlers registered with the ``on_*`` methods are called as
    ``handler(message, session)`` where ``session`` is a read-only
    :class:`SessionView`. Several handlers may be registered per message;
    passing ``None`` removes the user handlers of that message.
    """

    def __init__(
        self,
        host: str | None = None,
        *,
        ping_interval: int | None = 20,
        open_timeout: float = 15.0,
        close_timeout: float = 2.0,
    ) -> None:
        """Initialize client.

        Args:
            host: WebSocket URL of the dev API server
            ping_interval: Keepalive ping interval (seconds), None disables
            open_timeout: Transport open timeout (seconds)
            close_timeout: Transport close timeout (seconds)
        """
        self.host = host

        self._ping_interval = ping_interval
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout

        # Connection state
        self._ws: B3d4WsClient | None = None
        self._state = ConnectionState.IDLE
        self._listen_task: asyncio.Task[None] | None = None
        # Bumped by every connect and close; stale transport opens are discarded
        self._attempt = 0

        # Session state
        self._session = SessionState()
        self._session_view = SessionView(self._session)

        self._requests = RequestCorrelator()
        self._dispatcher = MessageDispatcher(self._session, self._session_view)
        for key, handler in SESSION_HANDLERS.items():
            self._dispatcher.set_builtin(key, handler)
        self._dispatcher.set_builtin(CONNECTION_OPEN, self._builtin_connection_open)
        self._dispatcher.set_builtin(CONNECTION_CLOSE, self._builtin_connection_close)

    # -------------------------------------------------------------------------
    # Public API: State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> SessionView:
        return self._session_view

    @property
    def is_connected(self) -> bool:
        """Check if the transport is open and a session was granted."""
        return self._state is ConnectionState.OPEN and bool(self._session.session_id)

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(
        self, host: str | None = None, *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Open the connection and wait for the server to grant a session.

        Args:
            host: WebSocket URL; the configured host is used when omitted
            timeout: Seconds to wait for the connect response

        Returns:
            The server's ``connect`` response

        Raises:
            B3d4InvalidRequest: No host is configured
            B3d4RequestError: The attempt was rejected, superseded by a newer
                connect, closed by the transport, or timed out
        """
        if isinstance(host, str) and host:
            self.host = host
        if not self.host:
            raise B3d4InvalidRequest("invalid host")

        self._attempt += 1
        attempt = self._attempt
        self._requests.resolve(
            CONNECT_REQUEST, False, error_payload("reset by new connect request")
        )
        await self._shutdown_transport()
        if attempt != self._attempt:
            raise B3d4RequestError(error_payload("reset by new connect request"))

        future = self._track_request(CONNECT_REQUEST, timeout)
        self._set_state(ConnectionState.CONNECTING)
        await self._open_transport(self.host, attempt)
        return await future

    async def reconnect(self) -> dict[str, Any]:
        """Drop the current connection and session, then connect again."""
        if not self.host:
            raise B3d4InvalidRequest("invalid host")

        _LOGGER.info("[%s] Reconnecting", self.host)
        await self._shutdown_transport()
        self._session.reset()
        return await self.connect()

    async def close(self) -> None:
        """Close the connection and clear the session.

        A connect still in progress is rejected and its transport discarded.
        """
        _LOGGER.info("[%s] Closing connection", self.host)
        self._attempt += 1
        await self._shutdown_transport()
        self._requests.resolve(
            CONNECT_REQUEST, False, error_payload("closed by client")
        )
        self._set_state(ConnectionState.CLOSED)
        self._session.reset()

    # -------------------------------------------------------------------------
    # Public API: Handlers
    # -------------------------------------------------------------------------

    def on_server_request(self, request: str, handler: Handler | None) -> None:
        """Register a handler for requests pushed by the server.

        An empty name registers a handler for every server request.
        """
        if not isinstance(request, str):
            _LOGGER.debug("Ignoring handler for non-string request %r", request)
            return
        self._dispatcher.set_handler(request_key(request), handler)

    def on_server_response(self, response: str, handler: Handler | None) -> None:
        """Register a handler for responses to client requests.

        An empty name registers a handler for every response.
        """
        if not isinstance(response, str):
            _LOGGER.debug("Ignoring handler for non-string response %r", response)
            return
        self._dispatcher.set_handler(response_key(response), handler)

    def on_connection_open(self, handler: Handler | None) -> None:
        """Register a handler for the transport opening."""
        self._dispatcher.set_handler(CONNECTION_OPEN, handler)

    def on_connection_close(self, handler: Handler | None) -> None:
        """Register a handler for the transport closing.

        Handlers receive ``{"code": int, "reason": str, "was_clean": bool}``.
        """
        self._dispatcher.set_handler(CONNECTION_CLOSE, handler)

    def handler_count(self, key: str) -> int:
        """Number of handlers for a message key, built-in included."""
        return self._dispatcher.handler_count(key)

    # -------------------------------------------------------------------------
    # Public API: Messages
    # -------------------------------------------------------------------------

    async def send_message(self, message: Mapping[str, Any]) -> bool:
        """Send a message stamped with the session id.

        Messages are dropped while no session is established.

        Returns:
            True if the message was handed to the transport
        """
        session_id = self._session.session_id
        if not session_id or self._ws is None:
            _LOGGER.debug("[%s] Dropping message without session: %s", self.host, message)
            return False

        await self._ws.send_json({**message, "session_id": session_id})
        return True

    async def send_request(
        self, message: Mapping[str, Any], timeout: float | None = None
    ) -> dict[str, Any]:
        """Send a request and wait for its response.

        Args:
            message: Request message, ``{"request": name, ...}``
            timeout: Seconds to wait for the response, None waits forever

        Returns:
            The response message

        Raises:
            B3d4InvalidRequest: No session, or the message names no request
            B3d4RequestError: The server answered with ERROR status, the
                request timed out, or it could not be sent
        """
        request = message.get("request") if isinstance(message, Mapping) else None
        if not self._session.session_id or not isinstance(request, str) or not request:
            raise B3d4InvalidRequest("invalid session or invalid request")

        future = self._track_request(request, timeout)
        try:
            await self.send_message(message)
        except B3d4ClientError as err:
            _LOGGER.error("[%s] Failed to send %s: %s", self.host, request, err)
            self._requests.resolve(request, False, error_payload(str(err)))
        return await future

    # -------------------------------------------------------------------------
    # Public API: Requests
    # -------------------------------------------------------------------------

    async def init_session(self, timeout: float | None = None) -> dict[str, Any]:
        return await self.send_request(build_request("session_init"), timeout)

    async def list_stations(self, timeout: float | None = None) -> dict[str, Any]:
        return await self.send_request(build_request("station_list"), timeout)

    async def select_station(
        self, station_id: str, timeout: float | None = None
    ) -> dict[str, Any]:
        if not isinstance(station_id, str):
            raise B3d4InvalidRequest("invalid station id")
        return await self.send_request(build_station_select(station_id), timeout)

    async def start_preview(
        self, timeout: float | None = None, **options: Any
    ) -> dict[str, Any]:
        """Start the camera preview; options override the default preview format."""
        if self._session.is_previewing:
            return {}
        return await self.send_request(build_preview_start(**options), timeout)

    async def stop_preview(self, timeout: float | None = None) -> dict[str, Any]:
        if not self._session.is_previewing:
            return {}
        return await self.send_request(build_request("preview_stop"), timeout)

    async def record_scan(self, timeout: float | None = None) -> dict[str, Any]:
        await self.stop_preview(timeout)
        return await self.send_request(build_request("scan_record"), timeout)

    async def process_scan(
        self, scan_id: str, timeout: float | None = None, *, debug: bool = False
    ) -> dict[str, Any]:
        if not isinstance(scan_id, str):
            raise B3d4InvalidRequest("invalid scan id")
        await self.stop_preview(timeout)
        return await self.send_request(build_scan_process(scan_id, debug=debug), timeout)

    async def release_scan(
        self, scan_id: str, timeout: float | None = None
    ) -> dict[str, Any]:
        if not isinstance(scan_id, str):
            raise B3d4InvalidRequest("invalid scan id")
        return await self.send_request(build_scan_release(scan_id), timeout)

    async def get_camera_status(self, timeout: float | None = None) -> dict[str, Any]:
        await self.stop_preview(timeout)
        return await self.send_request(build_request("camera_status"), timeout)

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if self._state is not state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.host, self._state.value, state.value
            )
            self._state = state

    async def _open_transport(self, url: str, attempt: int) -> None:
        _LOGGER.info("[%s] Connecting", url)
        ws = B3d4WsClient()
        try:
            await ws.connect(
                url,
                ping_interval=self._ping_interval,
                timeout=self._open_timeout,
            )
        except B3d4ClientError as err:
            if attempt != self._attempt:
                _LOGGER.debug("[%s] Superseded connection failed: %s", url, err)
                return
            _LOGGER.warning("[%s] Connection failed: %s", url, err)
            self._set_state(ConnectionState.CLOSED)
            self._dispatcher.dispatch(
                CONNECTION_CLOSE,
                close_details(ABNORMAL_CLOSURE, str(err), was_clean=False),
            )
            return

        if attempt != self._attempt:
            _LOGGER.debug("[%s] Discarding superseded connection", url)
            try:
                await asyncio.wait_for(ws.close(), timeout=self._close_timeout)
            except (TimeoutError, B3d4ClientError) as err:
                _LOGGER.warning("[%s] WebSocket close failed: %s", url, err)
            return

        self._ws = ws
        self._set_state(ConnectionState.OPEN)
        self._listen_task = asyncio.create_task(self._listen(ws))
        self._dispatcher.dispatch(CONNECTION_OPEN, {"host": url})

    async def _shutdown_transport(self) -> None:
        """Stop the listener and close the transport, if any."""
        ws, task = self._ws, self._listen_task
        self._ws = None
        self._listen_task = None

        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if ws is None:
            return

        try:
            await asyncio.wait_for(ws.close(), timeout=self._close_timeout)
        except TimeoutError:
            _LOGGER.warning("[%s] WebSocket close timed out", self.host)
        except B3d4ClientError as err:
            _LOGGER.warning("[%s] WebSocket close failed: %s", self.host, err)

        self._transport_closed(
            close_details(NORMAL_CLOSURE, "closed by client", was_clean=True)
        )

    def _transport_closed(self, details: dict[str, Any]) -> None:
        _LOGGER.info(
            "[%s] Connection closed (code=%s, reason=%r)",
            self.host,
            details["code"],
            details["reason"],
        )
        self._set_state(ConnectionState.CLOSED)
        self._dispatcher.dispatch(CONNECTION_CLOSE, details)

    def _track_request(
        self, name: str, timeout: float | None
    ) -> asyncio.Future[dict[str, Any]]:
        """Register ``name`` and return a future settled by its resolution."""
        future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )

        def on_success(payload: dict[str, Any]) -> None:
            if not future.done():
                future.set_result(payload)

        def on_failure(payload: dict[str, Any]) -> None:
            if not future.done():
                future.set_exception(B3d4RequestError(payload))

        self._requests.register(
            name,
            on_success,
            on_failure,
            timeout=timeout,
            timeout_payload=error_payload(
                "timed out", session_id=self._session.session_id
            ),
        )
        return future

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws: B3d4WsClient) -> None:
        """Route messages from the device until the transport closes."""
        details = close_details(ABNORMAL_CLOSURE, "listener stopped", was_clean=False)
        message_count = 0
        try:
            async for msg in ws:
                message_count += 1
                if msg.type in (B3d4WsMessageType.CLOSED, B3d4WsMessageType.ERROR):
                    if isinstance(msg.data, dict):
                        details = msg.data
                    break
                self._route(msg)
        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self.host, message_count
            )
            raise
        except B3d4ClientError as err:
            _LOGGER.warning("[%s] Client error: %s", self.host, err)
            details = close_details(ABNORMAL_CLOSURE, str(err), was_clean=False)

        if self._ws is ws:
            self._ws = None
            self._listen_task = None
            self._transport_closed(details)

    def _route(self, msg: B3d4WsMessage) -> None:
        """Handle one message; handler errors are logged, not raised."""
        try:
            if msg.type is B3d4WsMessageType.BINARY and isinstance(msg.data, bytes):
                self._handle_frame(msg.data)
            elif msg.type is B3d4WsMessageType.TEXT:
                self._handle_text(msg)
        except Exception as err:
            _LOGGER.exception("[%s] Message handler error: %s", self.host, err)

    def _handle_frame(self, buffer: bytes) -> None:
        frame = decode_frame(buffer)
        if isinstance(frame, FrameDecodeFailure):
            _LOGGER.warning(
                "[%s] Dropping %s frame: %s", self.host, frame.status, frame.error
            )
            return

        event = frame.event if isinstance(frame.event, dict) else {}
        payload = {"camera": event.get("camera"), "frame": bytes(frame.data)}
        if is_capture_event(event):
            self._dispatcher.handle_server_request(CAMERA_SNAP, payload)
        else:
            self._dispatcher.handle_server_request(CAMERA_FRAME, payload)

    def _handle_text(self, msg: B3d4WsMessage) -> None:
        try:
            data = B3d4WsClient.decode_json(msg)
        except ValueError as err:
            _LOGGER.warning("[%s] Invalid message: %s", self.host, err)
            return
        if not isinstance(data, dict):
            _LOGGER.debug("[%s] Ignoring non-object message: %r", self.host, data)
            return

        response_to = data.get("response_to")
        if response_to:
            self._requests.resolve(
                response_to, data.get("status") != STATUS_ERROR, data
            )
            self._dispatcher.handle_server_response(response_to, data)
        elif data.get("request"):
            self._dispatcher.handle_server_request(data["request"], data)
        else:
            _LOGGER.debug("[%s] Unroutable message: %s", self.host, data)

    # -------------------------------------------------------------------------
    # Internal: Built-in Handlers
    # -------------------------------------------------------------------------

    def _builtin_connection_open(self, event: dict[str, Any], state: SessionState) -> None:
        _LOGGER.info("[%s] WebSocket open, waiting for session", self.host)

    def _builtin_connection_close(
        self, event: dict[str, Any], state: SessionState
    ) -> None:
        # A closed transport can never complete a connection attempt.
        self._requests.resolve(
            CONNECT_REQUEST,
            False,
            error_payload("rejected by websocket close", event=dict(event)),
        )
