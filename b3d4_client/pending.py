"""Correlate outgoing requests with their responses.

Requests are tracked by request name: the device protocol carries no request
id, so only one request of a given name can be outstanding at a time.
Registering a name again replaces the earlier entry, whose callbacks then
never fire.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

_LOGGER = logging.getLogger(__name__)

TIMED_OUT_MESSAGE = "timed out"

Completion = Callable[[dict[str, Any]], None]


@dataclass(slots=True)
class PendingRequest:
    """Completion callbacks of one in-flight request."""

    name: str
    on_success: Completion
    on_failure: Completion
    timer: asyncio.TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class RequestCorrelator:
    """Pending requests keyed by request name."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def register(
        self,
        name: str,
        on_success: Completion,
        on_failure: Completion,
        *,
        timeout: float | None = None,
        timeout_payload: dict[str, Any] | None = None,
    ) -> PendingRequest:
        """Track a request until it is resolved.

        Args:
            name: Request name the response will refer to.
            on_success: Called with the response payload.
            on_failure: Called with the error payload.
            timeout: Seconds after which the request fails with
                ``timeout_payload``. Requires a running event loop.
            timeout_payload: Failure payload used on timeout, defaults to
                ``{"status": "ERROR", "message": "timed out"}``.

        Returns:
            The new pending entry.
        """
        loop = asyncio.get_running_loop() if timeout else None

        previous = self._pending.pop(name, None)
        if previous is not None:
            _LOGGER.debug("Pending request %r superseded", name)
            previous.cancel_timer()

        entry = PendingRequest(name, on_success, on_failure)
        self._pending[name] = entry

        if loop is not None:
            payload = timeout_payload or {
                "status": "ERROR",
                "message": TIMED_OUT_MESSAGE,
            }
            entry.timer = loop.call_later(
                timeout, self.resolve, name, False, payload
            )
        return entry

    def resolve(self, name: str, success: bool, payload: dict[str, Any]) -> bool:
        """Complete the pending request ``name``.

        Returns:
            True if a pending request was completed, False if none was
            outstanding under that name.
        """
        entry = self._pending.pop(name, None)
        if entry is None:
            return False

        entry.cancel_timer()
        if success:
            entry.on_success(payload)
        else:
            entry.on_failure(payload)
        return True
