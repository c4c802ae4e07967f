"""Tests for the named timer set."""

from __future__ import annotations

import asyncio

import pytest

from conftest import VirtualLoop
from lms_session.scheduling.timers import TimerKey, TimerSet


@pytest.fixture
def timers(vloop: VirtualLoop) -> TimerSet:
    return TimerSet(vloop)


class TestScheduleOnce:
    def test_fires_after_delay(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        fired: list[str] = []
        timers.schedule_once(TimerKey.HARD_LOGOUT, 5000, lambda: fired.append("logout"))

        vloop.advance(4)
        assert fired == []
        assert timers.is_armed(TimerKey.HARD_LOGOUT)

        vloop.advance(1)
        assert fired == ["logout"]
        assert not timers.is_armed(TimerKey.HARD_LOGOUT)

    @pytest.mark.parametrize("delay", [0, -250])
    def test_non_positive_delay_is_never_synchronous(
        self, timers: TimerSet, vloop: VirtualLoop, delay: int
    ) -> None:
        fired: list[int] = []
        timers.schedule_once(TimerKey.HARD_LOGOUT, delay, lambda: fired.append(1))
        assert fired == []

        vloop.run_ready()
        assert fired == [1]

    def test_rescheduling_replaces_previous(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        fired: list[str] = []
        timers.schedule_once(TimerKey.WARNING_START, 1000, lambda: fired.append("old"))
        timers.schedule_once(TimerKey.WARNING_START, 2000, lambda: fired.append("new"))

        vloop.advance(5)
        assert fired == ["new"]

    def test_stale_handle_cannot_cancel_replacement(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        fired: list[str] = []
        old = timers.schedule_once(TimerKey.WARNING_START, 1000, lambda: fired.append("old"))
        timers.schedule_once(TimerKey.WARNING_START, 1000, lambda: fired.append("new"))

        old.cancel()
        vloop.advance(1)
        assert fired == ["new"]


class TestScheduleRepeating:
    def test_fires_every_interval(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        ticks: list[float] = []
        timers.schedule_repeating(TimerKey.COUNTDOWN_TICK, 1000, lambda: ticks.append(vloop.now()))

        vloop.advance(3)
        assert len(ticks) == 3
        assert timers.is_armed(TimerKey.COUNTDOWN_TICK)

    def test_callback_may_cancel_itself(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        ticks: list[int] = []

        def _tick() -> None:
            ticks.append(1)
            if len(ticks) == 2:
                timers.cancel(TimerKey.COUNTDOWN_TICK)

        timers.schedule_repeating(TimerKey.COUNTDOWN_TICK, 1000, _tick)
        vloop.advance(10)
        assert len(ticks) == 2
        assert not timers.is_armed(TimerKey.COUNTDOWN_TICK)
        assert vloop.pending == 0

    def test_non_positive_interval_rejected(self, timers: TimerSet) -> None:
        with pytest.raises(ValueError):
            timers.schedule_repeating(TimerKey.COUNTDOWN_TICK, 0, lambda: None)
        assert timers.armed_keys == frozenset()


class TestCancellation:
    def test_cancel_unarmed_key_is_noop(self, timers: TimerSet) -> None:
        timers.cancel(TimerKey.HARD_LOGOUT)
        timers.cancel(TimerKey.HARD_LOGOUT)
        assert timers.armed_keys == frozenset()

    def test_cancel_all_stops_every_timer(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        fired: list[TimerKey] = []
        timers.schedule_once(TimerKey.WARNING_START, 1000, lambda: fired.append(TimerKey.WARNING_START))
        timers.schedule_repeating(TimerKey.COUNTDOWN_TICK, 1000, lambda: fired.append(TimerKey.COUNTDOWN_TICK))
        timers.schedule_once(TimerKey.HARD_LOGOUT, 2000, lambda: fired.append(TimerKey.HARD_LOGOUT))
        assert timers.armed_keys == frozenset(TimerKey)

        timers.cancel_all()
        timers.cancel_all()
        vloop.advance(10)
        assert fired == []
        assert vloop.pending == 0

    def test_handle_cancel(self, timers: TimerSet, vloop: VirtualLoop) -> None:
        fired: list[int] = []
        handle = timers.schedule_once(TimerKey.HARD_LOGOUT, 1000, lambda: fired.append(1))
        handle.cancel()
        handle.cancel()
        vloop.advance(2)
        assert fired == []
        assert handle.cancelled


class TestAsyncioLoop:
    async def test_runs_on_the_running_loop(self) -> None:
        timers = TimerSet()
        fired: list[int] = []
        timers.schedule_once(TimerKey.HARD_LOGOUT, 0, lambda: fired.append(1))
        assert fired == []

        await asyncio.sleep(0.05)
        assert fired == [1]

    def test_requires_a_loop_outside_async_code(self) -> None:
        with pytest.raises(RuntimeError):
            TimerSet().schedule_once(TimerKey.HARD_LOGOUT, 0, lambda: None)
