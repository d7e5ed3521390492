#!/usr/bin/env python3
"""
Auto-rotate the screen (and touch/keyboard input) from the accelerometer.

Repo source: rot8/tools/rot8.py

Loop:
  - read iio accelerometer X/Y (tools/rot8_sensor.py)
  - classify into normal/inverted/rotated-left/rotated-right (tools/rot8_orientation.py)
  - consult the keyboard policy (tools/rot8_keyboard.py)
  - apply through sway or Xorg (tools/rot8_backend.py), then run --rotate-hook

The starting orientation is read back from the display server, not assumed.
A failed apply is logged and retried on the next poll; the process only gives
up after --max-apply-failures consecutive failures.
"""

from __future__ import annotations

import argparse
import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from rot8_backend import DEFAULT_CMD_TIMEOUT_S, Backend, BackendError, CommandRunner, detect_backend
from rot8_keyboard import DEFAULT_KEYBOARD_MODE, keyboard_action, parse_keyboard_mode, should_suppress
from rot8_orientation import DEFAULT_THRESHOLD, Orientation, classify, human_normal
from rot8_sensor import DEFAULT_IIO_ROOT, SensorReader, discover_accelerometer


VERSION = "0.2.0"

DEFAULT_SLEEP_MS = 500
DEFAULT_DISPLAY = "eDP-1"
DEFAULT_TOUCHSCREEN = "ELAN0732:00 04F3:22E1"
DEFAULT_MAX_APPLY_FAILURES = 5


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _log(event: str, **extra: object) -> None:
    out = {"ts": utc_iso(), "event": event, **extra}
    print(json.dumps(out, sort_keys=True), flush=True)


@dataclass(frozen=True)
class Config:
    interval_s: float = DEFAULT_SLEEP_MS / 1000.0
    display: str = DEFAULT_DISPLAY
    touchscreen: str = DEFAULT_TOUCHSCREEN
    threshold: float = DEFAULT_THRESHOLD
    keyboard_mode: str = DEFAULT_KEYBOARD_MODE
    keyboards: tuple[str, ...] = ()
    rotate_90: bool = False
    flip_y: bool = False
    rotate_hook: str | None = None
    iio_root: Path = DEFAULT_IIO_ROOT
    cmd_timeout_s: float = DEFAULT_CMD_TIMEOUT_S
    max_apply_failures: int = DEFAULT_MAX_APPLY_FAILURES
    once: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        if args.sleep < 0:
            raise ValueError("--sleep must be >= 0")
        if args.threshold <= 0:
            raise ValueError("--threshold must be > 0")
        if args.cmd_timeout_s <= 0:
            raise ValueError("--cmd-timeout-s must be > 0")
        if args.max_apply_failures < 0:
            raise ValueError("--max-apply-failures must be >= 0")
        return cls(
            interval_s=args.sleep / 1000.0,
            display=args.display,
            touchscreen=args.touchscreen,
            threshold=float(args.threshold),
            keyboard_mode=parse_keyboard_mode(args.keyboard_mode),
            keyboards=tuple(args.keyboard or ()),
            rotate_90=bool(args.rotate_90),
            flip_y=bool(args.flip_y),
            rotate_hook=args.rotate_hook or None,
            iio_root=args.iio_root,
            cmd_timeout_s=float(args.cmd_timeout_s),
            max_apply_failures=int(args.max_apply_failures),
            once=bool(args.once),
        )


class RotationController:
    """
    Owns the applied orientation and decides, once per poll, whether to rotate.
    """

    def __init__(
        self,
        config: Config,
        *,
        sensor: SensorReader,
        backend: Backend,
        keyboards: Sequence[str] = (),
        scale: float | None = None,
        runner: CommandRunner | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.sensor = sensor
        self.backend = backend
        self.keyboards = tuple(keyboards)
        self.scale = scale
        self.runner = runner or CommandRunner(timeout_s=config.cmd_timeout_s)
        self.sleep = sleep
        self.human_normal = human_normal(config.rotate_90)
        self.current: Orientation | None = None
        self.apply_failures = 0
        self._last_suppressed: Orientation | None = None

    def start(self) -> Orientation | None:
        label = self.backend.current_rotation(self.config.display)
        self.current = self.backend.orientation_for(label)
        _log(
            "initial_rotation",
            backend=self.backend.name,
            display=self.config.display,
            label=label,
            orientation=self.current.name if self.current else None,
        )
        return self.current

    def _keyboards_attached(self) -> bool:
        try:
            return self.backend.is_keyboard_attached(self.keyboards)
        except BackendError as exc:
            _log("keyboard_check_failed", error=str(exc))
            return False

    def step(self) -> bool:
        """
        Run one poll. Returns True if a rotation was applied.
        """

        sample = self.sensor.read()
        candidate = classify(
            sample,
            scale=self.scale,
            flip_y=self.config.flip_y,
            rotate_90=self.config.rotate_90,
            threshold=self.config.threshold,
            previous=self.current,
        )
        if candidate is None or candidate == self.current:
            self._last_suppressed = None
            return False

        old = self.current
        if should_suppress(
            self.config.keyboard_mode,
            attached=self._keyboards_attached,
            old=old,
            new=candidate,
            human_normal=self.human_normal,
        ):
            if candidate != self._last_suppressed:
                _log(
                    "rotation_suppressed",
                    from_orientation=old.name if old else None,
                    to_orientation=candidate.name,
                    human_normal=self.human_normal.name,
                    reason="keyboard_attached",
                )
                self._last_suppressed = candidate
            return False
        self._last_suppressed = None

        action = keyboard_action(self.config.keyboard_mode, candidate, self.human_normal)
        _log(
            "rotation_candidate",
            from_orientation=old.name if old else None,
            to_orientation=candidate.name,
            human_normal=self.human_normal.name,
            keyboard_action=action,
            x=sample.x,
            y=sample.y,
        )

        start = time.monotonic()
        try:
            self.backend.apply(
                candidate,
                display=self.config.display,
                touchscreen=self.config.touchscreen,
                keyboards=self.keyboards,
                keyboard_action=action,
            )
        except BackendError as exc:
            self.apply_failures += 1
            _log(
                "rotate_failed",
                backend=self.backend.name,
                from_orientation=old.name if old else None,
                to_orientation=candidate.name,
                error=str(exc),
                consecutive_failures=self.apply_failures,
            )
            return False

        _log(
            "rotated",
            backend=self.backend.name,
            from_orientation=old.name if old else None,
            to_orientation=candidate.name,
            keyboard_action=action,
            elapsed_s=round(time.monotonic() - start, 3),
        )
        self.apply_failures = 0
        self.current = candidate
        self._run_hook()
        return True

    def _run_hook(self) -> None:
        hook = self.config.rotate_hook
        if not hook:
            return
        try:
            proc = self.runner.run(["/bin/sh", "-c", hook])
        except BackendError as exc:
            _log("hook_failed", hook=hook, error=str(exc))
            return
        if proc.returncode != 0:
            msg = (proc.stderr or proc.stdout or "").strip()
            _log("hook_failed", hook=hook, rc=proc.returncode, error=msg or None)

    def failed_out(self) -> bool:
        limit = self.config.max_apply_failures
        return limit > 0 and self.apply_failures >= limit

    def run(self) -> int:
        while True:
            self.step()
            if self.failed_out():
                _log("apply_failures_exceeded", consecutive_failures=self.apply_failures)
                return 1
            if self.config.once:
                return 1 if self.apply_failures else 0
            self.sleep(self.config.interval_s)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rot8",
        description="Rotate the display and touch input from the accelerometer (sway or Xorg).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    p.add_argument("-s", "--sleep", type=int, default=DEFAULT_SLEEP_MS, help="Polling interval in ms (default: 500).")
    p.add_argument("-d", "--display", default=DEFAULT_DISPLAY, help="Display output to rotate (default: eDP-1).")
    p.add_argument(
        "-i",
        "--touchscreen",
        default=DEFAULT_TOUCHSCREEN,
        help="Touchscreen input device (X11 only; default: ELAN0732:00 04F3:22E1).",
    )
    p.add_argument(
        "-t",
        "--threshold",
        type=float,
        default=DEFAULT_THRESHOLD,
        help="Rotation threshold, squared distance to the reference vector (default: 0.5).",
    )
    p.add_argument(
        "--keyboard-mode",
        default=DEFAULT_KEYBOARD_MODE,
        help=(
            "'integrated': keyboard is part of the device, disable it when rotated (sway only); "
            "'detachable': lock rotation while the keyboard is attached; "
            "'none': do not touch keyboards (default: integrated)."
        ),
    )
    p.add_argument(
        "--keyboard",
        action="append",
        default=None,
        help="Keyboard device (sway input identifier or xinput name). Repeatable; default: discover (sway only).",
    )
    p.add_argument(
        "--rotate-90",
        action="store_true",
        help="[PineTab hack] Content is 90 degrees counterclockwise when upright.",
    )
    p.add_argument("--flip-y", action="store_true", help="[PineTab hack] Flip the Y axis.")
    p.add_argument("--rotate-hook", default="", help="Shell command to run after each rotation.")
    p.add_argument(
        "--iio-root",
        type=Path,
        default=DEFAULT_IIO_ROOT,
        help="Where to look for the accelerometer (default: /sys/bus/iio/devices).",
    )
    p.add_argument(
        "--cmd-timeout-s",
        type=float,
        default=DEFAULT_CMD_TIMEOUT_S,
        help="Timeout for swaymsg/xrandr/xinput/hook commands (seconds; default: 8).",
    )
    p.add_argument(
        "--max-apply-failures",
        type=int,
        default=DEFAULT_MAX_APPLY_FAILURES,
        help="Exit after this many consecutive failed rotations (0 = never; default: 5).",
    )
    p.add_argument("--once", action="store_true", help="Evaluate/apply once and exit.")
    return p


def resolve_keyboards(config: Config, backend: Backend) -> tuple[str, ...]:
    """
    Keyboards to toggle (integrated) or check for attachment (detachable).

    Detachable mode only checks keyboards named with --keyboard: the keyboards
    sway lists include always-present devices (Power_Button, Video_Bus) that
    would hold the rotation lock forever.
    """

    if config.keyboards:
        return config.keyboards
    if config.keyboard_mode == "detachable":
        return ()
    return tuple(backend.list_keyboards())


def main(argv: list[str]) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = Config.from_args(args)
    except ValueError as exc:
        raise SystemExit(str(exc))

    runner = CommandRunner(timeout_s=config.cmd_timeout_s)
    try:
        backend = detect_backend(runner)
    except BackendError as exc:
        raise SystemExit(str(exc))
    _log("backend_detected", backend=backend.name, sway_socket=getattr(backend, "socket", None))

    paths = discover_accelerometer(config.iio_root)
    if paths is None:
        raise SystemExit(f"no accelerometer found under {config.iio_root} (need in_accel_x_raw/in_accel_y_raw)")
    sensor = SensorReader(paths)
    scale = sensor.read_scale()

    try:
        keyboards = resolve_keyboards(config, backend)
    except BackendError as exc:
        raise SystemExit(f"unable to list keyboards: {exc}")
    if config.keyboard_mode == "detachable" and not keyboards:
        _log("keyboard_check_disabled", reason="detachable mode needs --keyboard; rotation is never locked")

    _log(
        "start",
        version=VERSION,
        backend=backend.name,
        display=config.display,
        touchscreen=config.touchscreen,
        threshold=config.threshold,
        interval_s=config.interval_s,
        keyboard_mode=config.keyboard_mode,
        keyboards=list(keyboards),
        rotate_90=config.rotate_90,
        flip_y=config.flip_y,
        rotate_hook=config.rotate_hook,
        accel=paths.to_json(),
        scale=scale,
        once=config.once,
        euid=int(os.geteuid()) if hasattr(os, "geteuid") else None,
    )

    controller = RotationController(
        config,
        sensor=sensor,
        backend=backend,
        keyboards=keyboards,
        scale=scale,
        runner=runner,
    )
    try:
        controller.start()
    except BackendError as exc:
        raise SystemExit(str(exc))
    return controller.run()


def cli() -> None:
    raise SystemExit(main(list(__import__("sys").argv[1:])))


if __name__ == "__main__":
    cli()
