#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Application state and the controller that owns it.

AppController is the single owner of AppState. It runs on the UI context:
the GUI (or a CLI tool) drains the EventChannel and hands every message to
AppController.handle(). Worker threads and listener threads never mutate the
state directly; they post messages.

Markers are opaque handles with a close() method, created through a
marker factory supplied by the GUI. The registry guarantees each handle is
closed exactly once.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

from autoclick_core import (
    DEFAULT_DELAY_S,
    AppConfig,
    ClickPosition,
    Point,
    RecordedSequence,
    normalize_hotkey,
)
from autoclick_engine import (
    EventChannel,
    FireClick,
    HotkeyPressed,
    PlaybackEngine,
    PlaybackFinished,
    PlaybackHandle,
    PlaybackState,
    PointerPressed,
    PositionMoved,
    Recorder,
    RecorderError,
    steps_from_actions,
    steps_from_positions,
)

logger = logging.getLogger(__name__)


class MarkerHandle(Protocol):
    def close(self) -> object: ...


MarkerFactory = Callable[[ClickPosition], MarkerHandle]


class MarkerRegistry:
    """position id -> marker handle, guarded by one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._markers: Dict[str, MarkerHandle] = {}

    def attach(self, position_id: str, handle: MarkerHandle) -> None:
        with self._lock:
            old = self._markers.pop(position_id, None)
            self._markers[position_id] = handle
        if old is not None and old is not handle:
            old.close()

    def detach(self, position_id: str) -> bool:
        with self._lock:
            handle = self._markers.pop(position_id, None)
        if handle is None:
            return False
        handle.close()
        return True

    def get(self, position_id: str) -> Optional[MarkerHandle]:
        with self._lock:
            return self._markers.get(position_id)

    def clear(self) -> int:
        with self._lock:
            handles = list(self._markers.values())
            self._markers.clear()
        for h in handles:
            h.close()
        return len(handles)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._markers)

    def __contains__(self, position_id: object) -> bool:
        with self._lock:
            return position_id in self._markers

    def __len__(self) -> int:
        with self._lock:
            return len(self._markers)


@dataclass
class AppState:
    config: AppConfig = field(default_factory=AppConfig)
    sequences: List[RecordedSequence] = field(default_factory=list)
    playback: PlaybackState = field(default_factory=PlaybackState)
    markers: MarkerRegistry = field(default_factory=MarkerRegistry)
    lock: threading.RLock = field(default_factory=threading.RLock)
    playing_sequence_id: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.playback.is_running

    def find_position(self, position_id: str) -> Optional[ClickPosition]:
        with self.lock:
            for p in self.config.click_positions:
                if p.id == position_id:
                    return p
        return None

    def find_sequence(self, sequence_id: str) -> Optional[RecordedSequence]:
        with self.lock:
            for s in self.sequences:
                if s.id == sequence_id:
                    return s
        return None


class AppController:
    def __init__(
        self,
        state: Optional[AppState] = None,
        channel: Optional[EventChannel] = None,
        backend=None,
        store=None,
        marker_factory: Optional[MarkerFactory] = None,
        recorder: Optional[Recorder] = None,
    ):
        self.state = state or AppState()
        self.channel = channel or EventChannel()
        self.backend = backend
        self.store = store
        self.marker_factory = marker_factory
        self.recorder = recorder or Recorder()
        self.engine = PlaybackEngine(self.state.playback, self.channel)
        self._observers: List[Callable[[str], None]] = []

    # ----------------------- observers -----------------------

    def subscribe(self, callback: Callable[[str], None]) -> None:
        self._observers.append(callback)

    def notify(self, text: str) -> None:
        logger.info("status: %s", text)
        for cb in list(self._observers):
            cb(text)

    @property
    def config(self) -> AppConfig:
        return self.state.config

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def is_recording(self) -> bool:
        return self.recorder.is_recording

    # ----------------------- persistence -----------------------

    def load(self) -> None:
        if self.store is None:
            return
        config = self.store.load_config()
        sequences = self.store.load_sequences()
        with self.state.lock:
            self.state.config = config
            self.state.sequences = sequences
        if self.store.last_error:
            self.notify(f"Settings could not be loaded, using defaults: {self.store.last_error}")
        self.refresh_markers()

    def save(self) -> bool:
        if self.store is None:
            return False
        ok = self.store.save_config(self.config) and self.store.save_sequences(self.state.sequences)
        if not ok:
            self.notify(f"Settings could not be saved: {self.store.last_error}")
        return ok

    # ----------------------- positions -----------------------

    def add_position(self, point: Point, delay: float = DEFAULT_DELAY_S) -> ClickPosition:
        with self.state.lock:
            positions = self.config.click_positions
            pos = ClickPosition(point=point, delay=delay, order=len(positions))
            positions.append(pos)
        logger.debug("added position %s at (%d,%d)", pos.id, point.x, point.y)
        if self.config.show_markers and not self.is_running:
            self.show_marker(pos)
        return pos

    def add_position_at_pointer(self, delay: float = DEFAULT_DELAY_S) -> Optional[ClickPosition]:
        if self.backend is None:
            return None
        p = self.backend.pointer_position()
        if p is None:
            return None
        return self.add_position(p, delay)

    def remove_position(self, position_id: str) -> bool:
        with self.state.lock:
            positions = self.config.click_positions
            kept = [p for p in positions if p.id != position_id]
            if len(kept) == len(positions):
                return False
            self.config.click_positions = kept
        self.state.markers.detach(position_id)
        return True

    def move_position(self, position_id: str, point: Point) -> bool:
        with self.state.lock:
            pos = self.state.find_position(position_id)
            if pos is None:
                return False
            pos.point = point
        return True

    def set_delay(self, position_id: str, delay: float) -> bool:
        if not math.isfinite(delay) or delay < 0:
            raise ValueError("delay must be a finite number >= 0")
        with self.state.lock:
            pos = self.state.find_position(position_id)
            if pos is None:
                return False
            pos.delay = float(delay)
        return True

    def set_visible(self, position_id: str, visible: bool) -> bool:
        pos = self.state.find_position(position_id)
        if pos is None:
            return False
        pos.is_visible = bool(visible)
        if visible and self.config.show_markers and not self.is_running:
            self.show_marker(pos)
        elif not visible:
            self.state.markers.detach(position_id)
        return True

    # ----------------------- settings -----------------------

    def set_repeat_count(self, n: int) -> None:
        if n < 0:
            raise ValueError("repeat count must be >= 0")
        self.config.global_repeat_count = int(n)

    def set_infinite(self, flag: bool) -> None:
        self.config.is_infinite_loop = bool(flag)

    def set_show_markers(self, flag: bool) -> None:
        self.config.show_markers = bool(flag)
        if flag:
            if not self.is_running:
                self.refresh_markers()
        else:
            self.state.markers.clear()

    def set_hotkey(self, text: str) -> str:
        """Store the canonical form of text; raises HotkeyError if invalid."""
        self.config.hotkey = normalize_hotkey(text)
        return self.config.hotkey

    # ----------------------- markers -----------------------

    def show_marker(self, pos: ClickPosition) -> None:
        if self.marker_factory is None or not pos.is_visible:
            return
        handle = self.marker_factory(pos)
        if handle is not None:
            self.state.markers.attach(pos.id, handle)

    def refresh_markers(self) -> None:
        self.state.markers.clear()
        if not self.config.show_markers:
            return
        for pos in list(self.config.click_positions):
            self.show_marker(pos)

    # ----------------------- playback -----------------------

    def run(self) -> Optional[PlaybackHandle]:
        if self.is_running:
            self.notify("Auto click is already running.")
            return None
        steps = steps_from_positions(self.config.click_positions)
        handle = self.engine.start(steps, self.config.repeat_counter())
        if handle is None:
            return None
        self.state.markers.clear()
        self.notify("Auto click started.")
        return handle

    def play_sequence(self, sequence_id: str, speed: float = 1.0) -> Optional[PlaybackHandle]:
        seq = self.state.find_sequence(sequence_id)
        if seq is None:
            return None
        if self.is_running:
            self.notify("Auto click is already running.")
            return None
        steps = steps_from_actions(seq.actions, seq.duration, speed)
        handle = self.engine.start(steps, self.config.repeat_counter())
        if handle is None:
            return None
        self.state.playing_sequence_id = sequence_id
        self.state.markers.clear()
        self.notify(f"Playing {seq.name or 'recording'}.")
        return handle

    def stop(self) -> None:
        self.engine.stop()

    def toggle(self) -> Optional[PlaybackHandle]:
        if self.is_running:
            self.stop()
            return None
        return self.run()

    # ----------------------- recording -----------------------

    def start_recording(self) -> bool:
        if not self.recorder.start():
            return False
        self.notify("Recording started.")
        return True

    def stop_recording(self, name: str) -> Optional[RecordedSequence]:
        try:
            result = self.recorder.stop()
        except RecorderError:
            return None
        seq = RecordedSequence.from_recording(name.strip(), result)
        with self.state.lock:
            self.state.sequences.append(seq)
        self.notify(f"Recorded {len(seq.actions)} clicks in {seq.duration:.2f}s.")
        if self.store is not None:
            self.save()
        return seq

    def delete_sequence(self, sequence_id: str) -> bool:
        with self.state.lock:
            before = len(self.state.sequences)
            self.state.sequences = [s for s in self.state.sequences if s.id != sequence_id]
            removed = len(self.state.sequences) != before
        if removed and self.store is not None:
            self.save()
        return removed

    # ----------------------- messages -----------------------

    def pump(self, limit: Optional[int] = None) -> int:
        return self.channel.drain(self.handle, limit)

    def handle(self, msg: object) -> None:
        if isinstance(msg, FireClick):
            if self.backend is not None:
                self.backend.click(msg.point)
        elif isinstance(msg, PositionMoved):
            self.move_position(msg.position_id, msg.point)
        elif isinstance(msg, HotkeyPressed):
            self.on_hotkey(msg.combo)
        elif isinstance(msg, PointerPressed):
            self.recorder.capture(msg.point, at=msg.at)
        elif isinstance(msg, PlaybackFinished):
            self.on_playback_finished(msg)
        else:
            logger.warning("unknown message: %r", msg)

    def on_hotkey(self, combo: str) -> bool:
        stored = self.config.hotkey
        if not stored or combo != stored:
            return False
        logger.info("hotkey %s matched", combo)
        self.toggle()
        return True

    def on_playback_finished(self, msg: PlaybackFinished) -> None:
        self.state.playing_sequence_id = None
        if self.config.show_markers and not self.is_running:
            self.refresh_markers()
        self.notify("Auto click stopped.")
