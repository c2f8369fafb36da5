#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""OS input surface: click injection, pointer/screen queries, global listeners.

Dependencies
- pyautogui: mouse down/up injection, pointer position, screen size
- pynput: global mouse/keyboard listeners (recording and the hotkey)

In a headless / no-DISPLAY environment both libraries may fail to import.
The backend then reports no screen and every dependent operation does
nothing.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Set

from autoclick_core import Point, ScreenGeometry, canonical_modifier, compose_hotkey, pointer_to_internal
from autoclick_engine import EventChannel, HotkeyPressed, PointerPressed

try:
    import pyautogui  # type: ignore
except Exception:  # pragma: no cover
    pyautogui = None

try:
    from pynput import keyboard, mouse  # type: ignore
except Exception:  # pragma: no cover
    keyboard = None
    mouse = None

logger = logging.getLogger(__name__)


class InputBackend:
    """Best-effort wrapper around pyautogui.

    click() never raises: failures are counted so callers (and tests) can see
    them without the playback loop caring.
    """

    def __init__(self, gui=None, fail_safe: bool = True):
        self._gui = gui if gui is not None else pyautogui
        self.clicks = 0
        self.failures = 0
        if self._gui is not None:
            self._gui.FAILSAFE = fail_safe
            self._gui.PAUSE = 0.0

    @property
    def available(self) -> bool:
        return self._gui is not None

    def click(self, p: Point) -> bool:
        if self._gui is None:
            self.failures += 1
            return False
        try:
            self._gui.mouseDown(x=p.x, y=p.y, button="left")
            self._gui.mouseUp(x=p.x, y=p.y, button="left")
        except Exception as e:
            self.failures += 1
            logger.debug("click at (%d,%d) failed: %s", p.x, p.y, e)
            return False
        self.clicks += 1
        return True

    def screen_geometry(self) -> Optional[ScreenGeometry]:
        if self._gui is None:
            return None
        try:
            w, h = self._gui.size()
        except Exception as e:
            logger.debug("screen size unavailable: %s", e)
            return None
        if w <= 0 or h <= 0:
            return None
        return ScreenGeometry(int(w), int(h))

    def pointer_position(self) -> Optional[Point]:
        screen = self.screen_geometry()
        if screen is None:
            return None
        try:
            x, y = self._gui.position()
        except Exception as e:
            logger.debug("pointer position unavailable: %s", e)
            return None
        return pointer_to_internal(x, y, screen)


def _key_name(key) -> str:
    """pynput key -> name understood by compose_hotkey."""
    name = getattr(key, "name", None)
    if name:
        return name
    char = getattr(key, "char", None)
    if char:
        # ctrl+letter arrives as a control character on some platforms
        if len(char) == 1 and ord(char) < 32:
            return chr(ord(char) + 96)
        return char
    vk = getattr(key, "vk", None)
    return f"vk{vk}" if vk is not None else ""


class GlobalListeners:
    """pynput listeners that turn OS events into channel messages.

    - primary mouse-button presses -> PointerPressed (pointer coordinates
      normalized to the internal space)
    - non-modifier key presses -> HotkeyPressed(combo) using the held
      modifiers
    """

    def __init__(
        self,
        channel: EventChannel,
        screen: Optional[ScreenGeometry] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.channel = channel
        self.screen = screen
        self.clock = clock
        self._held: Set[str] = set()
        self._mouse_listener = None
        self._kb_listener = None

    @property
    def available(self) -> bool:
        return mouse is not None and keyboard is not None

    def start(self) -> bool:
        if not self.available:
            logger.warning("pynput not available; global listeners disabled")
            return False
        if self._mouse_listener is None:
            self._mouse_listener = mouse.Listener(on_click=self._on_click)
            self._mouse_listener.start()
        if self._kb_listener is None:
            self._kb_listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
            self._kb_listener.start()
        return True

    def stop(self) -> None:
        for lst in (self._mouse_listener, self._kb_listener):
            if lst is not None:
                lst.stop()
        self._mouse_listener = None
        self._kb_listener = None
        self._held.clear()

    def _on_click(self, x, y, button, pressed):
        if not pressed or button != mouse.Button.left:
            return
        p = pointer_to_internal(x, y, self.screen)
        self.channel.put(PointerPressed(p, self.clock()))

    def _on_press(self, key):
        if self._kb_listener is not None:
            key = self._kb_listener.canonical(key)
        name = _key_name(key)
        mod = canonical_modifier(name) if name else None
        if mod is not None:
            self._held.add(mod)
            return
        if not name:
            return
        self.channel.put(HotkeyPressed(compose_hotkey(self._held, name)))

    def _on_release(self, key):
        if self._kb_listener is not None:
            key = self._kb_listener.canonical(key)
        name = _key_name(key)
        mod = canonical_modifier(name) if name else None
        if mod is not None:
            self._held.discard(mod)
