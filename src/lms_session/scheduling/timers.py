"""Named, cancellable timers for the session controller.

Pattern: One Handle per Purpose
--------------------------------
The controller needs exactly three timers: one that starts the expiry
warning, one that ticks the visible countdown, and one that performs the
hard logout.  Each lives under a fixed ``TimerKey``.  Arming a key that is
already armed replaces the old timer, and ``cancel_all`` clears every key in
one call, so two sessions can never end up with interleaved timers.

Timers run on whatever loop is handed in: the running asyncio loop in
production, or a virtual loop in tests.  The only thing required of the loop
is ``call_later(delay_seconds, callback)`` returning an object with
``cancel()``.  Callbacks always run on a later loop iteration, never inside
the ``schedule_*`` call that armed them.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerKey(enum.Enum):
    WARNING_START = "warning-start"
    COUNTDOWN_TICK = "countdown-tick"
    HARD_LOGOUT = "hard-logout"


class _Cancellable(Protocol):
    def cancel(self) -> Any: ...


class SchedulingLoop(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _Cancellable: ...


class ScheduledTimer:
    """Handle for one armed timer.  Cancelling a stale handle does nothing."""

    def __init__(self, owner: TimerSet, key: TimerKey, repeating: bool) -> None:
        self._owner = owner
        self.key = key
        self.repeating = repeating
        self.cancelled = False
        self._loop_handle: Optional[_Cancellable] = None

    @property
    def is_current(self) -> bool:
        return not self.cancelled and self._owner._timers.get(self.key) is self

    def cancel(self) -> None:
        if self.is_current:
            self._owner.cancel(self.key)
        else:
            self._release()

    def _release(self) -> None:
        self.cancelled = True
        if self._loop_handle is not None:
            self._loop_handle.cancel()
            self._loop_handle = None

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "armed"
        return f"ScheduledTimer({self.key.value}, {state})"


class TimerSet:
    """Owns the warning-start, countdown-tick and hard-logout timers."""

    def __init__(self, loop: Optional[SchedulingLoop] = None) -> None:
        self._loop = loop
        self._timers: dict[TimerKey, ScheduledTimer] = {}

    def schedule_once(
        self,
        key: TimerKey,
        delay_millis: int,
        callback: Callable[[], Any],
    ) -> ScheduledTimer:
        """Run *callback* once after *delay_millis*; non-positive delays run next iteration."""
        loop = self._get_loop()
        timer = self._replace(key, repeating=False)

        def _fire() -> None:
            if not timer.is_current:
                return
            del self._timers[key]
            timer.cancelled = True
            callback()

        timer._loop_handle = loop.call_later(max(delay_millis, 0) / 1000, _fire)
        logger.debug("Armed %s in %dms", key.value, delay_millis)
        return timer

    def schedule_repeating(
        self,
        key: TimerKey,
        interval_millis: int,
        callback: Callable[[], Any],
    ) -> ScheduledTimer:
        """Run *callback* every *interval_millis* until the key is cancelled."""
        if interval_millis <= 0:
            raise ValueError(f"Repeating interval must be positive, got {interval_millis}ms")
        loop = self._get_loop()
        timer = self._replace(key, repeating=True)
        interval = interval_millis / 1000

        def _fire() -> None:
            if not timer.is_current:
                return
            # Re-arm before running so the callback may cancel its own key.
            timer._loop_handle = loop.call_later(interval, _fire)
            callback()

        timer._loop_handle = loop.call_later(interval, _fire)
        logger.debug("Armed %s every %dms", key.value, interval_millis)
        return timer

    def cancel(self, key: TimerKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer._release()
            logger.debug("Cancelled %s", key.value)

    def cancel_all(self) -> None:
        for key in TimerKey:
            self.cancel(key)

    def is_armed(self, key: TimerKey) -> bool:
        return key in self._timers

    @property
    def armed_keys(self) -> frozenset[TimerKey]:
        return frozenset(self._timers)

    # -- private helpers -----------------------------------------------------

    def _replace(self, key: TimerKey, repeating: bool) -> ScheduledTimer:
        self.cancel(key)
        timer = ScheduledTimer(self, key, repeating)
        self._timers[key] = timer
        return timer

    def _get_loop(self) -> SchedulingLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()
