# This project was developed with assistance from AI tools.
"""Delayed callbacks and debouncing.

``LoopScheduler`` runs callbacks on the asyncio event loop. Anything with a
``call_later(delay, callback) -> handle`` method (handle exposing
``cancel()``) can stand in for it, which lets tests drive time by hand.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class Debouncer:
    """Runs ``action`` once a quiet period has passed since the last trigger.

    Every ``trigger()`` cancels the pending timer and starts a new one, so a
    burst of triggers collapses into a single call.
    """

    def __init__(self, scheduler: Scheduler, delay: float, action: Callable[[], None]):
        self._scheduler = scheduler
        self._delay = delay
        self._action = action
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        self._handle = self._scheduler.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._action()
