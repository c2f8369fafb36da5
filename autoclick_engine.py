#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Playback engine and recorder.

Threads
- The playback loop runs on its own worker thread. It never touches the OS
  input API: each click is posted to an EventChannel as FireClick, and the
  UI-owning thread drains the channel and performs the injection.
- The recorder is fed from the pynput listener thread (via PointerPressed
  messages or direct capture() calls); it is append-only behind a lock.

Cancellation is cooperative: stop() clears the running flag and wakes the
worker out of its delay wait. The flag is checked before every step.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Union

from autoclick_core import (
    Action,
    ActionType,
    ClickPosition,
    Point,
    RecordingResult,
    RepeatCounter,
    playback_order,
)

logger = logging.getLogger(__name__)


class RecorderError(RuntimeError):
    pass


# ----------------------- channel messages -----------------------


@dataclass(frozen=True)
class FireClick:
    point: Point
    index: int
    pass_no: int
    issued_at: float


@dataclass(frozen=True)
class PlaybackFinished:
    reason: str  # completed | stopped | empty
    passes: int
    clicks: int


@dataclass(frozen=True)
class PositionMoved:
    position_id: str
    point: Point


@dataclass(frozen=True)
class HotkeyPressed:
    combo: str


@dataclass(frozen=True)
class PointerPressed:
    point: Point
    at: float


class EventChannel:
    """Multi-producer, single-consumer message channel.

    Producers call put() from any thread. The owner of the UI context calls
    drain() (or get()) and handles messages there.
    """

    def __init__(self):
        self._q: "queue.Queue[object]" = queue.Queue()

    def put(self, msg: object) -> None:
        self._q.put(msg)

    def get(self, timeout: Optional[float] = None) -> Optional[object]:
        try:
            return self._q.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self, handler: Callable[[object], None], limit: Optional[int] = None) -> int:
        n = 0
        while limit is None or n < limit:
            try:
                msg = self._q.get_nowait()
            except queue.Empty:
                break
            handler(msg)
            n += 1
        return n

    def empty(self) -> bool:
        return self._q.empty()


# ----------------------- playback -----------------------


@dataclass(frozen=True)
class PlaybackStep:
    point: Optional[Point]  # None: wait only
    delay: float

    def __post_init__(self):
        if not math.isfinite(self.delay) or self.delay < 0:
            raise ValueError("delay must be a finite number >= 0")


def steps_from_positions(positions: Iterable[ClickPosition]) -> List[PlaybackStep]:
    return [PlaybackStep(point=p.point, delay=float(p.delay)) for p in playback_order(positions)]


def steps_from_actions(actions: Sequence[Action], duration: float, speed: float = 1.0) -> List[PlaybackStep]:
    """Turn recorded absolute timestamps into per-step delays.

    One pass takes `duration / speed` seconds: a lead-in until the first
    action, then the gap after each action, the last one padded to duration.
    """
    if speed <= 0:
        raise ValueError("speed must be > 0")
    if not actions:
        return []

    steps: List[PlaybackStep] = []
    first = max(0.0, actions[0].timestamp)
    if first > 0:
        steps.append(PlaybackStep(point=None, delay=first / speed))

    for i, a in enumerate(actions):
        if i + 1 < len(actions):
            nxt = actions[i + 1].timestamp
        else:
            nxt = max(duration, a.timestamp)
        gap = max(0.0, nxt - a.timestamp) / speed
        # swipe has no injection; it only keeps its slot
        point = a.point if a.type == ActionType.CLICK else None
        steps.append(PlaybackStep(point=point, delay=gap))
    return steps


class PlaybackState:
    """Process-wide running flag plus loop bookkeeping."""

    def __init__(self):
        self.lock = threading.Lock()
        self._running = threading.Event()
        self._wake = threading.Event()
        self.live_loops = 0
        self.max_live_loops = 0

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def try_begin(self) -> bool:
        """Claim the single loop slot. The slot is held until loop_exited()."""
        with self.lock:
            if self._running.is_set() or self.live_loops > 0:
                return False
            self.live_loops += 1
            self.max_live_loops = max(self.max_live_loops, self.live_loops)
            self._running.set()
            self._wake.clear()
            return True

    def clear(self) -> None:
        self._running.clear()
        self._wake.set()

    def loop_exited(self) -> None:
        with self.lock:
            self.live_loops -= 1
            self._running.clear()

    def wait(self, seconds: float) -> None:
        if seconds > 0:
            self._wake.wait(seconds)


@dataclass
class PlaybackHandle:
    thread: Optional[threading.Thread] = None
    done: threading.Event = field(default_factory=threading.Event)
    clicks: int = 0
    passes: int = 0
    reason: str = ""

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.done.wait(timeout)


class PlaybackEngine:
    def __init__(self, state: PlaybackState, channel: EventChannel, clock: Callable[[], float] = time.monotonic):
        self.state = state
        self.channel = channel
        self.clock = clock
        self.handle: Optional[PlaybackHandle] = None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def start(
        self,
        steps: Sequence[PlaybackStep],
        repeats: Union[RepeatCounter, int, None],
    ) -> Optional[PlaybackHandle]:
        """Start the loop on a worker thread; None if one is already active.

        repeats: RepeatCounter, a finite int, or None for infinite.
        """
        counter = repeats if isinstance(repeats, RepeatCounter) else RepeatCounter(repeats)
        if not self.state.try_begin():
            logger.debug("playback already running; start ignored")
            return None

        steps = list(steps)
        handle = PlaybackHandle()
        handle.thread = threading.Thread(
            target=self._run,
            args=(handle, steps, counter),
            name="playback",
            daemon=True,
        )
        self.handle = handle
        logger.info("playback started: %d steps, %r", len(steps), counter)
        handle.thread.start()
        return handle

    def stop(self) -> None:
        if self.state.is_running:
            logger.info("playback stop requested")
        self.state.clear()

    def wait(self, timeout: Optional[float] = None) -> bool:
        h = self.handle
        if h is None:
            return True
        return h.wait(timeout)

    def _run(self, handle: PlaybackHandle, steps: List[PlaybackStep], counter: RepeatCounter) -> None:
        state = self.state
        try:
            if not steps:
                handle.reason = "empty"
                return

            while state.is_running and not counter.exhausted:
                for i, step in enumerate(steps):
                    if not state.is_running:
                        break
                    if step.point is not None:
                        self.channel.put(FireClick(step.point, i, handle.passes, self.clock()))
                        handle.clicks += 1
                    state.wait(step.delay)
                else:
                    handle.passes += 1
                    counter.tick()
                    continue
                break

            handle.reason = "completed" if counter.exhausted else "stopped"
        finally:
            state.loop_exited()
            logger.info(
                "playback finished: %s (passes=%d clicks=%d)", handle.reason, handle.passes, handle.clicks
            )
            self.channel.put(PlaybackFinished(handle.reason, handle.passes, handle.clicks))
            handle.done.set()


# ----------------------- recorder -----------------------


class Recorder:
    """Captures primary clicks into an ordered Action list."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._lock = threading.Lock()
        self._actions: List[Action] = []
        self._start: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self._start is not None

    @property
    def actions(self) -> List[Action]:
        with self._lock:
            return list(self._actions)

    def start(self) -> bool:
        with self._lock:
            if self._start is not None:
                return False
            self._actions = []
            self._start = self.clock()
        logger.info("recording started")
        return True

    def capture(self, point: Point, action_type: ActionType = ActionType.CLICK, at: Optional[float] = None) -> Optional[Action]:
        with self._lock:
            if self._start is None:
                return None
            t = self.clock() if at is None else at
            action = Action(type=action_type, point=point, timestamp=max(0.0, t - self._start))
            self._actions.append(action)
        logger.debug("recorded %s at (%d,%d) t=%.3f", action.type.value, point.x, point.y, action.timestamp)
        return action

    def stop(self) -> RecordingResult:
        with self._lock:
            if self._start is None:
                raise RecorderError("not recording")
            duration = self.clock() - self._start
            actions = tuple(self._actions)
            self._start = None
        logger.info("recording stopped: %d actions, %.2fs", len(actions), duration)
        return RecordingResult(actions=actions, duration=duration)
