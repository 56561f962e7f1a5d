import pytest

from foodguess.services.games.timers import ManualScheduler, TimerController


@pytest.fixture()
def clock():
    return ManualScheduler()


@pytest.fixture()
def timers(clock):
    return TimerController(clock)


def _recorder():
    ticks, done = [], []
    return ticks, done, ticks.append, lambda: done.append(True)


def test_ticks_once_per_second_then_completes(clock, timers):
    ticks, done, on_tick, on_complete = _recorder()
    timers.schedule(3, on_tick, on_complete)
    clock.advance(2)
    assert ticks == [2, 1]
    assert done == []
    clock.advance(1)
    assert ticks == [2, 1, 0]
    assert done == [True]
    assert timers.active_count() == 0


def test_pause_and_resume_keep_exact_remaining_time(clock, timers):
    ticks, done, on_tick, on_complete = _recorder()
    handle = timers.schedule(60, on_tick, on_complete)
    clock.advance(23)
    remaining = timers.pause(handle)
    assert remaining == 37
    clock.advance(500)
    assert len(ticks) == 23
    assert done == []

    resumed = timers.resume(handle, remaining)
    assert resumed is not handle
    assert handle.state == 'cancelled'
    clock.advance(1)
    assert ticks[-1] == 36
    clock.advance(36)
    assert ticks[-1] == 0
    assert done == [True]


def test_pause_mid_second_keeps_the_fraction(clock, timers):
    ticks, done, on_tick, on_complete = _recorder()
    handle = timers.schedule(60, on_tick, on_complete)
    clock.advance(10.5)
    remaining = timers.pause(handle)
    assert remaining == pytest.approx(49.5)
    clock.advance(3)
    timers.resume(handle, remaining)
    clock.advance(0.5)
    assert ticks[-1] == 49


def test_cancel_stops_everything(clock, timers):
    ticks, done, on_tick, on_complete = _recorder()
    handle = timers.schedule(5, on_tick, on_complete)
    clock.advance(2)
    timers.cancel(handle)
    clock.advance(10)
    assert ticks == [4, 3]
    assert done == []
    assert clock.pending() == 0


def test_cancel_from_inside_a_tick(clock, timers):
    ticks, done = [], []
    handles = {}

    def on_tick(n):
        ticks.append(n)
        if n == 2:
            timers.cancel(handles['t'])

    handles['t'] = timers.schedule(4, on_tick, lambda: done.append(True))
    clock.advance(10)
    assert ticks == [3, 2]
    assert done == []


def test_callback_queued_for_the_same_instant_never_fires_after_cancel(clock, timers):
    handles = {}
    b_ticks, b_done = [], []
    timers.schedule(1, on_complete=lambda: timers.cancel(handles['b']))
    handles['b'] = timers.schedule(1, b_ticks.append, lambda: b_done.append(True))
    clock.advance(1)
    assert b_ticks == []
    assert b_done == []


def test_zero_duration_completes_without_ticking(clock, timers):
    ticks, done, on_tick, on_complete = _recorder()
    timers.schedule(0, on_tick, on_complete)
    clock.advance(0)
    assert ticks == []
    assert done == [True]


def test_pausing_twice_returns_the_frozen_value(clock, timers):
    handle = timers.schedule(10)
    clock.advance(4)
    assert timers.pause(handle) == 6
    clock.advance(4)
    assert timers.pause(handle) == 6
