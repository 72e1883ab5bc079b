"""Dispatch inbound messages to per-key handler chains.

Each message key owns a chain whose first slot holds the built-in handler
(a no-op unless the client wires one). User handlers are appended after it
and can only be removed all at once, so session bookkeeping always runs and
always runs first.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .protocol import request_key, response_key

Handler = Callable[[Any, Any], None]


def _builtin_placeholder(message: Any, context: Any) -> None:
    """Built-in slot of keys the client does not maintain state for."""


class HandlerChain:
    """Built-in handler followed by user handlers in registration order."""

    __slots__ = ("_builtin", "_handlers")

    def __init__(self, builtin: Handler | None = None) -> None:
        self._builtin: Handler = builtin or _builtin_placeholder
        self._handlers: list[Handler] = []

    @property
    def builtin(self) -> Handler:
        return self._builtin

    @builtin.setter
    def builtin(self, handler: Handler) -> None:
        self._builtin = handler

    def append(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def clear(self) -> None:
        """Remove every user handler, keeping the built-in slot."""
        self._handlers.clear()

    def user_handlers(self) -> tuple[Handler, ...]:
        return tuple(self._handlers)

    def __len__(self) -> int:
        return 1 + len(self._handlers)


class MessageDispatcher:
    """Registry of handler chains keyed by message key.

    The built-in handler of a chain is called with ``builtin_context`` (the
    mutable session state), user handlers with ``user_context`` (a read-only
    view of it).
    """

    def __init__(self, builtin_context: Any = None, user_context: Any = None) -> None:
        self._builtin_context = builtin_context
        self._user_context = user_context
        self._chains: dict[str, HandlerChain] = {}

    def _chain(self, key: str) -> HandlerChain:
        chain = self._chains.get(key)
        if chain is None:
            chain = self._chains[key] = HandlerChain()
        return chain

    def set_builtin(self, key: str, handler: Handler) -> None:
        """Install the built-in handler for ``key``."""
        self._chain(key).builtin = handler

    def set_handler(self, key: str, handler: Handler | None) -> None:
        """Append a user handler for ``key``, or clear them with ``None``."""
        chain = self._chain(key)
        if handler is None:
            chain.clear()
        else:
            chain.append(handler)

    def handler_count(self, key: str) -> int:
        """Number of handlers for ``key``, built-in slot included (0 if unknown)."""
        chain = self._chains.get(key)
        return len(chain) if chain is not None else 0

    def dispatch(self, key: str, message: Any) -> None:
        """Call every handler registered under ``key`` in order.

        Handler exceptions propagate and stop the remaining handlers.
        """
        chain = self._chains.get(key)
        if chain is None:
            return
        chain.builtin(message, self._builtin_context)
        for handler in chain.user_handlers():
            handler(message, self._user_context)

    def handle_server_request(self, name: str, message: Any) -> None:
        """Dispatch a server request to general, then specific handlers."""
        if not isinstance(name, str):
            return
        self.dispatch(request_key(), message)
        self.dispatch(request_key(name), message)

    def handle_server_response(self, name: str, message: Any) -> None:
        """Dispatch a response to general, then specific handlers."""
        if not isinstance(name, str):
            return
        self.dispatch(response_key(), message)
        self.dispatch(response_key(name), message)
