#!/usr/bin/env python3
"""
Keyboard policy for convertibles.

Repo source: rot8/tools/rot8_keyboard.py

  - integrated: the keyboard is part of the chassis. Never block a rotation,
    but disable the keyboard whenever the device is not in its human-normal
    orientation (sway only).
  - detachable: while a keyboard is attached, hold the human-normal
    orientation. The only rotation let through is the one back to
    human-normal.
  - none: leave keyboards alone.
"""

from __future__ import annotations

from typing import Callable

from rot8_orientation import Orientation


KEYBOARD_MODES = ("integrated", "detachable", "none")
DEFAULT_KEYBOARD_MODE = "integrated"

KEYBOARD_ENABLED = "enabled"
KEYBOARD_DISABLED = "disabled"


def parse_keyboard_mode(value: str) -> str:
    mode = str(value).strip().lower()
    if mode not in KEYBOARD_MODES:
        raise ValueError("--keyboard-mode can be one of 'integrated', 'detachable', and 'none'")
    return mode


def integrated_keyboard_action(new: Orientation, human_normal: Orientation) -> str:
    return KEYBOARD_ENABLED if new == human_normal else KEYBOARD_DISABLED


def keyboard_action(mode: str, new: Orientation, human_normal: Orientation) -> str | None:
    if mode == "integrated":
        return integrated_keyboard_action(new, human_normal)
    return None


def should_suppress(
    mode: str,
    *,
    attached: Callable[[], bool],
    old: Orientation | None,
    new: Orientation,
    human_normal: Orientation,
) -> bool:
    """
    True if the rotation old -> new must not be applied.

    attached is only called in detachable mode; checking may spawn a process per
    keyboard.
    """

    if mode != "detachable":
        return False
    if not attached():
        return False
    return old == human_normal or new != human_normal
