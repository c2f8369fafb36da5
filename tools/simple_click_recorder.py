#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Simple click recorder (no Qt).

Records primary-button clicks with their timing and saves them as a named
recording in the autoclick store (autoclick_sequences.yaml).

Hotkeys:
- F10: stop and save

Usage (after `pip install -e .`, or with PYTHONPATH=. from the repo root):
  py tools/simple_click_recorder.py --name login-flow

Notes:
- Coordinates are rounded and normalized the same way as in the app.
- AUTOCLICK_HOME overrides where the recording is saved.
- If the existing recordings file cannot be read, nothing is recorded.
"""

from __future__ import annotations

import argparse
import time
from pathlib import Path

from pynput import keyboard, mouse

from autoclick_core import RecordedSequence, pointer_to_internal
from autoclick_engine import Recorder
from autoclick_input import InputBackend
from autoclick_store import ConfigStore


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True, help="recording name")
    ap.add_argument("--home", default=None, help="storage folder (default: AUTOCLICK_HOME or ~/Documents)")
    return ap.parse_args()


def main() -> int:
    ns = parse_args()
    store = ConfigStore(Path(ns.home) if ns.home else None)
    sequences = store.load_sequences()
    if store.last_error:
        print(f"Cannot read existing recordings, aborting: {store.last_error}")
        return 1

    screen = InputBackend().screen_geometry()
    recorder = Recorder()
    stopped = False

    def on_click(x, y, button, pressed):
        if pressed and button == mouse.Button.left:
            a = recorder.capture(pointer_to_internal(x, y, screen))
            if a is not None:
                print(f"click @ ({a.point.x},{a.point.y}) t={a.timestamp:.3f}")

    def on_press(key):
        nonlocal stopped
        if key == keyboard.Key.f10:
            stopped = True
            return False  # stop listener

    print("Recording... (F10 stop)")
    recorder.start()

    with mouse.Listener(on_click=on_click) as ml, keyboard.Listener(on_press=on_press):
        while not stopped:
            time.sleep(0.05)
        ml.stop()

    result = recorder.stop()
    seq = RecordedSequence.from_recording(ns.name, result)
    sequences.append(seq)
    if not store.save_sequences(sequences):
        print(f"Save failed: {store.last_error}")
        return 1

    print(f"Saved {len(seq.actions)} clicks ({seq.duration:.2f}s) as {seq.name!r}: {store.sequences_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
