"""Pytest configuration and fixtures for b3d4_client tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from typing import Any
from unittest.mock import patch

import pytest

from b3d4_client import B3d4Client
from b3d4_client.transport.ws_client import (
    B3d4WsClient,
    B3d4WsMessage,
    B3d4WsMessageType,
    close_details,
)

HOST = "ws://192.168.1.20:3000"


class FakeWsClient:
    """In-memory stand-in for B3d4WsClient fed by the test."""

    def __init__(
        self,
        connect_error: Exception | None = None,
        connect_gate: asyncio.Event | None = None,
    ) -> None:
        self.url: str | None = None
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._connect_error = connect_error
        self._connect_gate = connect_gate
        self._queue: asyncio.Queue[B3d4WsMessage] = asyncio.Queue()

    async def connect(self, url: str, **kwargs: Any) -> None:
        if self._connect_gate is not None:
            await self._connect_gate.wait()
        if self._connect_error is not None:
            raise self._connect_error
        self.url = url

    async def close(self) -> None:
        self.closed = True

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    def feed_json(self, payload: dict[str, Any]) -> None:
        self.feed_text(json.dumps(payload))

    def feed_text(self, text: str) -> None:
        self._queue.put_nowait(B3d4WsMessage(B3d4WsMessageType.TEXT, text))

    def feed_bytes(self, data: bytes) -> None:
        self._queue.put_nowait(B3d4WsMessage(B3d4WsMessageType.BINARY, data))

    def drop(self, code: int = 1006, reason: str = "", *, was_clean: bool = False) -> None:
        self._queue.put_nowait(
            B3d4WsMessage(
                B3d4WsMessageType.CLOSED,
                close_details(code, reason, was_clean=was_clean),
            )
        )

    def __aiter__(self) -> AsyncIterator[B3d4WsMessage]:
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[B3d4WsMessage]:
        while True:
            yield await self._queue.get()


class FakeTransports:
    """Replacement for the B3d4WsClient class that records created clients."""

    decode_json = staticmethod(B3d4WsClient.decode_json)

    def __init__(self) -> None:
        self.created: list[FakeWsClient] = []
        self.connect_error: Exception | None = None
        # When set, new transports block in connect() until the event fires
        self.connect_gate: asyncio.Event | None = None

    def __call__(self) -> FakeWsClient:
        ws = FakeWsClient(self.connect_error, self.connect_gate)
        self.created.append(ws)
        return ws

    @property
    def last(self) -> FakeWsClient:
        return self.created[-1]


@pytest.fixture
def transports() -> Iterator[FakeTransports]:
    """Patch the client's transport with in-memory fakes."""
    fakes = FakeTransports()
    with patch("b3d4_client.client.B3d4WsClient", fakes):
        yield fakes


@pytest.fixture
def client(transports: FakeTransports) -> B3d4Client:
    return B3d4Client(HOST)


@pytest.fixture
def settle() -> Callable[[], Awaitable[None]]:
    """Let the listener task process everything fed so far."""

    async def _settle() -> None:
        for _ in range(10):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def connected(
    client: B3d4Client,
    transports: FakeTransports,
    settle: Callable[[], Awaitable[None]],
) -> Callable[..., Awaitable[FakeWsClient]]:
    """Connect ``client`` and grant it a session."""

    async def _connect(session_id: str = "session-1") -> FakeWsClient:
        task = asyncio.create_task(client.connect())
        await settle()
        transports.last.feed_json(
            {"response_to": "connect", "status": "OK", "session_id": session_id}
        )
        await task
        return transports.last

    return _connect
