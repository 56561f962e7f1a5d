"""Countdown timers for the game phases.

``TimerController`` turns a scheduler's one-shot callbacks into once-per-second
countdowns that can be paused, resumed and cancelled. Two schedulers exist:

- ``ManualScheduler`` keeps virtual time and only moves when ``advance`` is
  called. Tests use it, and it makes every phase deterministic.
- ``BackgroundTaskScheduler`` sleeps in Socket.IO background tasks and runs
  the callback under the registry lock inside an app context, the same way
  the stage timers of the game server always worked.

A callback whose token was cancelled never runs: both schedulers check the
cancelled set at fire time, and the controller additionally compares the
handle's arm generation before touching any state.
"""

import heapq
import itertools
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]
CompleteCallback = Callable[[], None]


class ManualScheduler:
    """Virtual-time scheduler; callbacks run only inside ``advance``."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: List[Tuple[float, int, int, Callable[[], None]]] = []
        self._seq = itertools.count()
        self._tokens = itertools.count(1)
        self._cancelled: Set[int] = set()
        self.lock = threading.RLock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> int:
        token = next(self._tokens)
        heapq.heappush(self._queue, (self._now + max(0.0, delay), next(self._seq), token, callback))
        return token

    def cancel(self, token: Optional[int]) -> None:
        if token is not None:
            self._cancelled.add(token)

    def pending(self) -> int:
        return sum(1 for _, _, token, _ in self._queue if token not in self._cancelled)

    def advance(self, seconds: float) -> None:
        """Move virtual time forward, firing due callbacks in order."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, token, callback = heapq.heappop(self._queue)
            if token in self._cancelled:
                self._cancelled.discard(token)
                continue
            self._now = due
            with self.lock:
                callback()
        self._now = target


class BackgroundTaskScheduler:
    """Real-time scheduler backed by Socket.IO background tasks."""

    def __init__(self, app, socketio, lock: Optional[threading.RLock] = None):
        self.app = app
        self.socketio = socketio
        self.lock = lock or threading.RLock()
        self._tokens = itertools.count(1)
        self._cancelled: Set[int] = set()

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> int:
        token = next(self._tokens)
        self.socketio.start_background_task(self._run, token, max(0.0, delay), callback)
        return token

    def cancel(self, token: Optional[int]) -> None:
        if token is not None:
            with self.lock:
                self._cancelled.add(token)

    def _run(self, token: int, delay: float, callback: Callable[[], None]) -> None:
        self.socketio.sleep(delay)
        with self.lock:
            if token in self._cancelled:
                self._cancelled.discard(token)
                return
            with self.app.app_context():
                try:
                    callback()
                except Exception:
                    self.app.logger.exception(f"[timer-error] token={token}")


@dataclass(eq=False)
class TimerHandle:
    """Live state of one countdown.

    ``remaining`` is exact at ``armed_at``; ``next_value`` is the whole
    second the next tick will report.
    """

    id: int
    remaining: float
    on_tick: Optional[TickCallback]
    on_complete: Optional[CompleteCallback]
    state: str = 'running'  # running, paused, cancelled, done
    token: Optional[int] = None
    generation: int = 0
    armed_at: float = 0.0
    next_value: int = 0
    label: str = field(default='timer')

    @property
    def active(self) -> bool:
        return self.state == 'running'


class TimerController:
    """Once-per-second countdowns with exact pause/resume."""

    def __init__(self, scheduler):
        self.scheduler = scheduler
        self._ids = itertools.count(1)
        self._handles: Dict[int, TimerHandle] = {}

    def schedule(self, duration_sec: float, on_tick: Optional[TickCallback] = None,
                 on_complete: Optional[CompleteCallback] = None, label: str = 'timer') -> TimerHandle:
        handle = TimerHandle(
            id=next(self._ids),
            remaining=max(0.0, float(duration_sec)),
            on_tick=on_tick,
            on_complete=on_complete,
            label=label,
        )
        self._handles[handle.id] = handle
        self._arm(handle)
        logger.debug(f"[timer-set] timer={handle.id} label={label} duration={handle.remaining:g}s")
        return handle

    def pause(self, handle: TimerHandle) -> float:
        """Freeze the countdown and return the exact remaining seconds."""
        if not handle.active:
            return handle.remaining
        elapsed = self.scheduler.now() - handle.armed_at
        handle.remaining = max(float(handle.next_value), handle.remaining - elapsed)
        self.scheduler.cancel(handle.token)
        handle.token = None
        handle.generation += 1
        handle.state = 'paused'
        logger.debug(f"[timer-pause] timer={handle.id} label={handle.label} remaining={handle.remaining:.3f}s")
        return handle.remaining

    def resume(self, handle: TimerHandle, remaining_sec: float) -> TimerHandle:
        """Start a fresh handle carrying the old callbacks and ``remaining_sec``."""
        self.cancel(handle)
        resumed = TimerHandle(
            id=next(self._ids),
            remaining=max(0.0, float(remaining_sec)),
            on_tick=handle.on_tick,
            on_complete=handle.on_complete,
            label=handle.label,
        )
        self._handles[resumed.id] = resumed
        self._arm(resumed)
        logger.debug(f"[timer-resume] timer={resumed.id} label={resumed.label} remaining={resumed.remaining:.3f}s")
        return resumed

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None:
            return
        if handle.state in ('running', 'paused'):
            handle.state = 'cancelled'
        self.scheduler.cancel(handle.token)
        handle.token = None
        handle.generation += 1
        self._handles.pop(handle.id, None)

    def active_count(self) -> int:
        return sum(1 for h in self._handles.values() if h.active)

    def _arm(self, handle: TimerHandle) -> None:
        if handle.remaining <= 0:
            handle.next_value = 0
            delay = 0.0
        else:
            handle.next_value = int(math.ceil(handle.remaining)) - 1
            delay = handle.remaining - handle.next_value
        handle.state = 'running'
        handle.armed_at = self.scheduler.now()
        handle.generation += 1
        generation = handle.generation
        handle.token = self.scheduler.call_later(delay, lambda: self._fire(handle, generation))

    def _fire(self, handle: TimerHandle, generation: int) -> None:
        if not handle.active or handle.generation != generation:
            return
        handle.token = None
        was_empty = handle.remaining <= 0
        handle.remaining = float(handle.next_value)
        if not was_empty and handle.on_tick is not None:
            handle.on_tick(handle.next_value)
            if not handle.active:
                return
        if handle.remaining > 0:
            self._arm(handle)
            return
        handle.state = 'done'
        self._handles.pop(handle.id, None)
        if handle.on_complete is not None:
            handle.on_complete()
