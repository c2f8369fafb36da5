#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Core pure logic for autoclick.

This module holds the testable pure logic (no Qt / pynput / pyautogui).
The engine, the controller and the GUI all build on it.

Terms:
- point: click coordinate in the internal space (top-left origin, pixels)
- marker: the on-screen circle drawn for a click position
- hotkey: canonical combination string, e.g. "Cmd+Shift+K"
"""

from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


MARKER_SIZE = 50
DEFAULT_DELAY_S = 1.0
DEFAULT_REPEAT_COUNT = 1
CONFIG_VERSION = 1


class ConfigFormatError(Exception):
    pass


class HotkeyError(ValueError):
    pass


def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def now_utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def new_id() -> str:
    return uuid.uuid4().hex


# ----------------------- coordinates -----------------------


@dataclass(frozen=True)
class Point:
    x: int
    y: int

    def __iter__(self):
        yield self.x
        yield self.y


@dataclass(frozen=True)
class ScreenGeometry:
    """The single display used for all conversions.

    bottom_left_origin is True for platforms whose pointer location and window
    frames count y upward from the bottom edge (AppKit). Qt and pyautogui both
    use a top-left origin.
    """

    width: int
    height: int
    bottom_left_origin: bool = False

    def contains(self, p: Point) -> bool:
        return 0 <= p.x < self.width and 0 <= p.y < self.height

    def clamp(self, p: Point) -> Point:
        return Point(clamp(p.x, 0, self.width - 1), clamp(p.y, 0, self.height - 1))


def pointer_to_internal(x: float, y: float, screen: Optional[ScreenGeometry] = None) -> Point:
    """Pointer location (platform convention) -> internal point.

    Without a screen the coordinates are only rounded.
    """
    px = int(round(x))
    py = int(round(y))
    if screen is not None and screen.bottom_left_origin:
        py = screen.height - py
    return Point(px, py)


def to_marker_space(p: Point, screen: ScreenGeometry, size: int = MARKER_SIZE) -> Point:
    """Internal click point -> draw origin of its marker window.

    The marker is a size×size square centered on the click point. The origin
    is its top-left corner in the window system's own convention, which for a
    bottom-left platform is the corner nearest the bottom edge.
    """
    half = size // 2
    ox = p.x - half
    if screen.bottom_left_origin:
        oy = screen.height - (p.y + half)
    else:
        oy = p.y - half
    return Point(ox, oy)


def to_injection_space(origin: Point, screen: ScreenGeometry, size: int = MARKER_SIZE) -> Point:
    """Marker draw origin -> internal click point. Inverse of to_marker_space."""
    half = size // 2
    x = origin.x + half
    if screen.bottom_left_origin:
        y = screen.height - origin.y - half
    else:
        y = origin.y + half
    return Point(x, y)


# ----------------------- hotkey -----------------------

MODIFIER_ORDER = ("Cmd", "Ctrl", "Option", "Shift")

MODIFIER_ALIASES = {
    "cmd": "Cmd",
    "command": "Cmd",
    "super": "Cmd",
    "win": "Cmd",
    "meta": "Cmd",
    "ctrl": "Ctrl",
    "control": "Ctrl",
    "alt": "Option",
    "alt_gr": "Option",
    "option": "Option",
    "opt": "Option",
    "shift": "Shift",
}

KEY_ALIASES = {
    "escape": "Esc",
    "return": "Enter",
    "spacebar": "Space",
    " ": "Space",
    "+": "Plus",
}


def canonical_modifier(name: str) -> Optional[str]:
    base = name.strip().lower()
    # pynput names sides separately: cmd_l, ctrl_r, shift_l ...
    if base.endswith("_l") or base.endswith("_r"):
        base = base[:-2]
    return MODIFIER_ALIASES.get(base)


def canonical_key(key: str) -> str:
    if key in KEY_ALIASES:
        return KEY_ALIASES[key]
    k = key.strip()
    if not k:
        return ""
    if k.lower() in KEY_ALIASES:
        return KEY_ALIASES[k.lower()]
    if len(k) == 1:
        return k.upper()
    return k[0].upper() + k[1:].lower()


def compose_hotkey(modifiers: Iterable[str], key: str) -> str:
    """Live combination string: modifiers in MODIFIER_ORDER, then the key."""
    held = set()
    for m in modifiers:
        c = canonical_modifier(m)
        if c is not None:
            held.add(c)
    parts = [m for m in MODIFIER_ORDER if m in held]
    parts.append(canonical_key(key))
    return "+".join(parts)


def normalize_hotkey(text: str) -> str:
    """Parse user-entered hotkey text into the canonical form.

    "shift+cmd+k" -> "Cmd+Shift+K". An empty string means no hotkey.
    """
    s = (text or "").strip()
    if not s:
        return ""

    # "+" alone or as the last token is the plus key itself
    tokens = s.split("+")
    if s.endswith("+"):
        tokens = [t for t in tokens if t != ""] + ["+"]
    tokens = [t.strip() for t in tokens]

    modifiers: List[str] = []
    keys: List[str] = []
    for t in tokens:
        if not t:
            raise HotkeyError(f"empty token in hotkey: {text!r}")
        c = canonical_modifier(t)
        if c is not None:
            modifiers.append(c)
        else:
            keys.append(t)

    if not keys:
        raise HotkeyError(f"hotkey needs a non-modifier key: {text!r}")
    if len(keys) > 1:
        raise HotkeyError(f"hotkey has more than one key: {text!r}")
    return compose_hotkey(modifiers, keys[0])


def hotkey_matches(stored: str, modifiers: Iterable[str], key: str) -> bool:
    if not stored:
        return False
    return compose_hotkey(modifiers, key) == stored


# ----------------------- repeat counter -----------------------


class RepeatCounter:
    """Pass counter for the playback loop.

    Infinite mode is remaining=None; tick() leaves it untouched so it can
    never reach zero.
    """

    def __init__(self, count: Optional[int]):
        if count is not None and count < 0:
            raise ValueError("repeat count must be >= 0")
        self.remaining = count

    @classmethod
    def infinite(cls) -> "RepeatCounter":
        return cls(None)

    @classmethod
    def from_settings(cls, repeat_count: int, infinite: bool) -> "RepeatCounter":
        return cls.infinite() if infinite else cls(repeat_count)

    @property
    def is_infinite(self) -> bool:
        return self.remaining is None

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def tick(self) -> None:
        if self.remaining is not None and self.remaining > 0:
            self.remaining -= 1

    def __repr__(self) -> str:
        return f"RepeatCounter({'inf' if self.remaining is None else self.remaining})"


# ----------------------- field helpers -----------------------


def _req(d: Dict[str, Any], key: str, where: str) -> Any:
    if key not in d:
        raise ConfigFormatError(f"missing field: {where}.{key}")
    return d[key]


def _as_int(v: Any, where: str) -> int:
    if isinstance(v, bool):
        raise ConfigFormatError(f"{where} must be int, got {v!r}")
    try:
        return int(v)
    except (TypeError, ValueError, OverflowError):
        raise ConfigFormatError(f"{where} must be int, got {v!r}")


def _as_float(v: Any, where: str) -> float:
    if isinstance(v, bool):
        raise ConfigFormatError(f"{where} must be a number, got {v!r}")
    try:
        f = float(v)
    except (TypeError, ValueError, OverflowError):
        raise ConfigFormatError(f"{where} must be a number, got {v!r}")
    if not math.isfinite(f):
        raise ConfigFormatError(f"{where} must be finite, got {v!r}")
    return f


def _as_mapping(v: Any, where: str) -> Dict[str, Any]:
    if not isinstance(v, dict):
        raise ConfigFormatError(f"{where} must be a mapping")
    return v


def _as_list(v: Any, where: str) -> List[Any]:
    if v is None:
        return []
    if not isinstance(v, list):
        raise ConfigFormatError(f"{where} must be a list")
    return v


# ----------------------- models -----------------------


@dataclass
class ClickPosition:
    point: Point
    delay: float = DEFAULT_DELAY_S
    order: int = 0
    is_visible: bool = True
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if not math.isfinite(self.delay) or self.delay < 0:
            raise ValueError("delay must be a finite number >= 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.point.x,
            "y": self.point.y,
            "delay": float(self.delay),
            "order": self.order,
            "is_visible": self.is_visible,
        }

    @classmethod
    def from_dict(cls, d: Any, where: str = "click_position") -> "ClickPosition":
        d = _as_mapping(d, where)
        delay = _as_float(d.get("delay", DEFAULT_DELAY_S), f"{where}.delay")
        if delay < 0:
            raise ConfigFormatError(f"{where}.delay must be >= 0, got {delay!r}")
        return cls(
            id=str(d.get("id") or new_id()),
            point=Point(_as_int(_req(d, "x", where), f"{where}.x"), _as_int(_req(d, "y", where), f"{where}.y")),
            delay=delay,
            order=_as_int(d.get("order", 0), f"{where}.order"),
            is_visible=bool(d.get("is_visible", True)),
        )


def playback_order(positions: Iterable[ClickPosition]) -> List[ClickPosition]:
    # sorted() is stable: equal orders keep creation order
    return sorted(positions, key=lambda p: p.order)


class ActionType(str, Enum):
    CLICK = "click"
    SWIPE = "swipe"


@dataclass(frozen=True)
class Action:
    type: ActionType
    point: Point
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "x": self.point.x, "y": self.point.y, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, d: Any, where: str = "action") -> "Action":
        d = _as_mapping(d, where)
        raw_type = d.get("type", ActionType.CLICK.value)
        try:
            action_type = ActionType(raw_type)
        except ValueError:
            raise ConfigFormatError(f"{where}.type unsupported: {raw_type!r}")
        return cls(
            type=action_type,
            point=Point(_as_int(_req(d, "x", where), f"{where}.x"), _as_int(_req(d, "y", where), f"{where}.y")),
            timestamp=_as_float(_req(d, "timestamp", where), f"{where}.timestamp"),
        )


@dataclass(frozen=True)
class RecordingResult:
    actions: Tuple[Action, ...]
    duration: float


@dataclass(frozen=True)
class RecordedSequence:
    name: str
    actions: Tuple[Action, ...]
    duration: float
    created_at: str = field(default_factory=now_utc_iso)
    id: str = field(default_factory=new_id)

    @classmethod
    def from_recording(cls, name: str, result: RecordingResult) -> "RecordedSequence":
        return cls(name=name, actions=tuple(result.actions), duration=result.duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "duration": self.duration,
            "actions": [a.to_dict() for a in self.actions],
        }

    @classmethod
    def from_dict(cls, d: Any, where: str = "sequence") -> "RecordedSequence":
        d = _as_mapping(d, where)
        actions = _as_list(d.get("actions"), f"{where}.actions")
        return cls(
            id=str(d.get("id") or new_id()),
            name=str(d.get("name") or ""),
            created_at=str(d.get("created_at") or now_utc_iso()),
            duration=_as_float(_req(d, "duration", where), f"{where}.duration"),
            actions=tuple(Action.from_dict(a, f"{where}.actions[{i}]") for i, a in enumerate(actions)),
        )


@dataclass
class AppConfig:
    click_positions: List[ClickPosition] = field(default_factory=list)
    hotkey: str = ""
    global_repeat_count: int = DEFAULT_REPEAT_COUNT
    is_infinite_loop: bool = False
    show_markers: bool = True

    def repeat_counter(self) -> RepeatCounter:
        return RepeatCounter.from_settings(self.global_repeat_count, self.is_infinite_loop)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CONFIG_VERSION,
            "click_positions": [p.to_dict() for p in self.click_positions],
            "hotkey": self.hotkey,
            "global_repeat_count": self.global_repeat_count,
            "is_infinite_loop": self.is_infinite_loop,
            "show_markers": self.show_markers,
        }

    @classmethod
    def from_dict(cls, d: Any) -> "AppConfig":
        d = _as_mapping(d, "config")
        version = _as_int(d.get("version", CONFIG_VERSION), "config.version")
        if version != CONFIG_VERSION:
            raise ConfigFormatError(f"unsupported config version: {version}")

        positions = _as_list(d.get("click_positions"), "click_positions")
        repeat = _as_int(d.get("global_repeat_count", DEFAULT_REPEAT_COUNT), "global_repeat_count")
        if repeat < 0:
            raise ConfigFormatError(f"global_repeat_count must be >= 0, got {repeat}")

        hotkey = d.get("hotkey") or ""
        try:
            hotkey = normalize_hotkey(str(hotkey))
        except HotkeyError as e:
            raise ConfigFormatError(f"hotkey: {e}")

        return cls(
            click_positions=[ClickPosition.from_dict(p, f"click_positions[{i}]") for i, p in enumerate(positions)],
            hotkey=hotkey,
            global_repeat_count=repeat,
            is_infinite_loop=bool(d.get("is_infinite_loop", False)),
            show_markers=bool(d.get("show_markers", True)),
        )
