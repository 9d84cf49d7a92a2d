"""Debounce bursts of change notifications into a single refresh."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

LOGGER = logging.getLogger(__name__)

DEFAULT_WINDOW_S = 0.2


class EventCoalescer:
    """Level-triggered debounce around one cancellable timer.

    Every ``notify()`` replaces the live timer, so the callback runs once,
    ``window_s`` after the last event of a burst.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        *,
        window_s: float = DEFAULT_WINDOW_S,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._callback = callback
        self.window_s = window_s
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Future[Any]] = set()
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def notify(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.window_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fired += 1
        LOGGER.debug("Debounce window elapsed, firing refresh")
        result = self._callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
