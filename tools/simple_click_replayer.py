#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Simple click replayer (no Qt).

Replays the saved click positions, or a named recording, from the autoclick
store. The playback loop runs on a worker thread; this main thread drains
the channel and performs the clicks.

Safety:
- FAILSAFE enabled: moving mouse to top-left may abort (pyautogui default)
- Ctrl+C stops playback

Usage (after `pip install -e .`, or with PYTHONPATH=. from the repo root):
  py tools/simple_click_replayer.py --repeat 3
  py tools/simple_click_replayer.py --sequence login-flow --speed 2.0

Options:
- --speed: 2.0 means twice as fast (half the delays); recordings only
- --dry-run: print events without clicking
"""

from __future__ import annotations

import argparse
from pathlib import Path

from autoclick_core import RepeatCounter
from autoclick_engine import (
    EventChannel,
    FireClick,
    PlaybackEngine,
    PlaybackFinished,
    PlaybackState,
    steps_from_actions,
    steps_from_positions,
)
from autoclick_input import InputBackend
from autoclick_store import ConfigStore


def non_negative_int(text: str) -> int:
    n = int(text)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {n}")
    return n


def positive_float(text: str) -> float:
    f = float(text)
    if not f > 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {text}")
    return f


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser()
    ap.add_argument("--sequence", default=None, help="recording name (default: saved click positions)")
    ap.add_argument("--repeat", type=non_negative_int, default=None, help="passes (default: saved repeat count)")
    ap.add_argument("--infinite", action="store_true", help="loop until Ctrl+C")
    ap.add_argument("--speed", type=positive_float, default=1.0, help="replay speed multiplier")
    ap.add_argument("--dry-run", action="store_true", help="do not click; only print")
    ap.add_argument("--home", default=None, help="storage folder (default: AUTOCLICK_HOME or ~/Documents)")
    return ap.parse_args(argv)


def main() -> int:
    ns = parse_args()
    store = ConfigStore(Path(ns.home) if ns.home else None)
    config = store.load_config()

    if ns.sequence:
        matches = [s for s in store.load_sequences() if s.name == ns.sequence]
        if not matches:
            print(f"No recording named {ns.sequence!r}")
            return 1
        seq = matches[-1]
        steps = steps_from_actions(seq.actions, seq.duration, ns.speed)
    else:
        steps = steps_from_positions(config.click_positions)

    if not steps:
        print("No click events")
        return 1

    if ns.infinite:
        counter = RepeatCounter.infinite()
    elif ns.repeat is not None:
        counter = RepeatCounter(ns.repeat)
    else:
        counter = config.repeat_counter()

    backend = None if ns.dry_run else InputBackend()
    if backend is not None and not backend.available:
        print("pyautogui not available (likely missing deps or DISPLAY)")
        return 1

    channel = EventChannel()
    engine = PlaybackEngine(PlaybackState(), channel)

    print(f"Replaying {len(steps)} steps... {counter} dry_run={ns.dry_run}")
    engine.start(steps, counter)

    finished = None
    try:
        while finished is None:
            msg = channel.get(timeout=0.1)
            if isinstance(msg, FireClick):
                if backend is None:
                    print(f"click left @ ({msg.point.x},{msg.point.y})")
                else:
                    backend.click(msg.point)
            elif isinstance(msg, PlaybackFinished):
                finished = msg
    except KeyboardInterrupt:
        engine.stop()
        engine.wait(5.0)
        print("Stopped")
        return 130

    failures = backend.failures if backend is not None else 0
    print(f"Done: {finished.reason}, passes={finished.passes}, clicks={finished.clicks}, failures={failures}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
