#!/usr/bin/env python3
"""
Display-server backends: query and apply rotation on sway or Xorg.

Repo source: rot8/tools/rot8_backend.py

Both backends shell out to the usual tools (swaymsg, xrandr, xinput) through a
CommandRunner, so tests can script the responses without a running session.
Any failure (command missing, timed out, non-zero exit, unparsable output) is
raised as BackendError; callers decide whether it is fatal.
"""

from __future__ import annotations

import json
import os
import re
import subprocess
from pathlib import Path
from typing import Any, Iterable, Sequence

from rot8_orientation import Orientation, from_sway_transform, from_xrandr_rotation


DEFAULT_CMD_TIMEOUT_S = 8.0
TOUCH_MATRIX_PROP = "Coordinate Transformation Matrix"


class BackendError(RuntimeError):
    pass


def _proc_error(proc: subprocess.CompletedProcess[str], tool: str) -> str:
    return (proc.stderr or proc.stdout or "").strip() or f"{tool} failed (rc={proc.returncode})"


class CommandRunner:
    """
    Synchronous subprocess wrapper with a per-command timeout.

    Returns the CompletedProcess regardless of exit status; raises BackendError
    only if the command could not run to completion.
    """

    def __init__(self, *, timeout_s: float | None = DEFAULT_CMD_TIMEOUT_S, env: dict[str, str] | None = None) -> None:
        self.timeout_s = timeout_s
        self.env = env

    def run(self, argv: Sequence[str], *, capture: bool = True) -> subprocess.CompletedProcess[str]:
        env = None
        if self.env:
            env = dict(os.environ)
            env.update(self.env)
        try:
            if capture:
                return subprocess.run(
                    list(argv), check=False, capture_output=True, text=True, timeout=self.timeout_s, env=env
                )
            return subprocess.run(
                list(argv),
                check=False,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                text=True,
                timeout=self.timeout_s,
                env=env,
            )
        except subprocess.TimeoutExpired as exc:
            raise BackendError(f"{argv[0]} timed out after {self.timeout_s}s") from exc
        except OSError as exc:
            raise BackendError(f"{argv[0]} failed to start: {type(exc).__name__}: {exc}") from exc

    def check(self, argv: Sequence[str]) -> str:
        proc = self.run(argv)
        if proc.returncode != 0:
            raise BackendError(_proc_error(proc, argv[0]))
        return proc.stdout


class Backend:
    """
    Operations the rotation loop needs from a display server.
    """

    name = "none"

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def list_keyboards(self) -> tuple[str, ...]:
        raise NotImplementedError

    def is_keyboard_attached(self, keyboards: Iterable[str]) -> bool:
        raise NotImplementedError

    def current_rotation(self, display: str) -> str:
        raise NotImplementedError

    def orientation_for(self, label: str) -> Orientation | None:
        raise NotImplementedError

    def apply(
        self,
        orientation: Orientation,
        *,
        display: str,
        touchscreen: str,
        keyboards: Sequence[str],
        keyboard_action: str | None,
    ) -> None:
        raise NotImplementedError


# --- sway -------------------------------------------------------------------


def _load_json_list(raw: str, what: str) -> list[dict[str, Any]]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BackendError(f"unable to parse swaymsg {what} JSON: {exc}") from exc
    if not isinstance(data, list):
        raise BackendError(f"unexpected swaymsg {what} reply: {type(data).__name__}")
    return [o for o in data if isinstance(o, dict)]


class SwayBackend(Backend):
    name = "sway"

    def __init__(self, runner: CommandRunner, *, socket: str | None = None) -> None:
        super().__init__(runner)
        self.socket = socket

    def _swaymsg(self, argv: list[str]) -> str:
        return self.runner.check(["swaymsg", *argv])

    def _inputs(self) -> list[dict[str, Any]]:
        return _load_json_list(self._swaymsg(["-t", "get_inputs", "-r"]), "get_inputs")

    def list_keyboards(self) -> tuple[str, ...]:
        out: list[str] = []
        for dev in self._inputs():
            ident = dev.get("identifier")
            if dev.get("type") == "keyboard" and isinstance(ident, str) and ident:
                out.append(ident)
        return tuple(out)

    def is_keyboard_attached(self, keyboards: Iterable[str]) -> bool:
        wanted = set(keyboards)
        if not wanted:
            return False
        present = {dev.get("identifier") for dev in self._inputs()}
        return bool(wanted & present)

    def current_rotation(self, display: str) -> str:
        outputs = _load_json_list(self._swaymsg(["-t", "get_outputs", "-r"]), "get_outputs")
        for o in outputs:
            if o.get("name") != display:
                continue
            t = o.get("transform")
            if isinstance(t, int):
                return str(t)
            if isinstance(t, str) and t:
                return t
            raise BackendError(f"display {display} has no transform in 'swaymsg -t get_outputs'")
        raise BackendError(f"Unable to determine rotation state: display {display} not found in 'swaymsg -t get_outputs'")

    def orientation_for(self, label: str) -> Orientation | None:
        return from_sway_transform(label)

    def apply(
        self,
        orientation: Orientation,
        *,
        display: str,
        touchscreen: str,
        keyboards: Sequence[str],
        keyboard_action: str | None,
    ) -> None:
        self._swaymsg(["output", display, "transform", orientation.sway_transform])
        if keyboard_action is None:
            return
        for keyboard in keyboards:
            self._swaymsg(["input", keyboard, "events", keyboard_action])


# --- Xorg -------------------------------------------------------------------


def xrandr_rotation_pattern(display: str) -> re.Pattern[str]:
    # e.g. "eDP-1 connected primary 1200x1920+0+0 left (normal left inverted right x axis y axis) 276mm x 184mm"
    return re.compile(
        rf"^{re.escape(display)} connected (?:.*? )?(?:(normal|inverted|left|right) )?"
        r"\(normal left inverted right x axis y axis\)"
    )


def parse_xrandr_rotation(report: str, display: str) -> str | None:
    pattern = xrandr_rotation_pattern(display)
    for line in report.splitlines():
        m = pattern.match(line)
        if m:
            return m.group(1) or "normal"
    return None


class X11Backend(Backend):
    name = "x11"

    def list_keyboards(self) -> tuple[str, ...]:
        # No discovery on Xorg; pass --keyboard explicitly.
        return ()

    def is_keyboard_attached(self, keyboards: Iterable[str]) -> bool:
        for keyboard in keyboards:
            proc = self.runner.run(["xinput", "list", keyboard], capture=False)
            if proc.returncode == 0:
                return True
        return False

    def current_rotation(self, display: str) -> str:
        report = self.runner.check(["xrandr"])
        rotation = parse_xrandr_rotation(report, display)
        if rotation is None:
            raise BackendError(f"Unable to determine rotation state: display {display} not found in xrandr output")
        return rotation

    def orientation_for(self, label: str) -> Orientation | None:
        return from_xrandr_rotation(label)

    def apply(
        self,
        orientation: Orientation,
        *,
        display: str,
        touchscreen: str,
        keyboards: Sequence[str],
        keyboard_action: str | None,
    ) -> None:
        self.runner.check(["xrandr", "--output", display, "--rotate", orientation.xrandr_rotation])
        self.runner.check(["xinput", "set-prop", touchscreen, TOUCH_MATRIX_PROP, *orientation.matrix_args()])


# --- detection --------------------------------------------------------------


def _process_running(runner: CommandRunner, name: str) -> bool:
    proc = runner.run(["pgrep", "-x", name])
    return proc.returncode == 0 and bool(proc.stdout.strip())


def detect_sway_socket() -> str | None:
    """
    $SWAYSOCK if it names a live socket, else the newest sway-ipc.*.sock in
    the runtime dir.
    """

    candidates: list[Path] = []
    env = (os.environ.get("SWAYSOCK") or "").strip()
    if env:
        candidates.append(Path(env))
    runtime = Path((os.environ.get("XDG_RUNTIME_DIR") or "").strip() or f"/run/user/{os.getuid()}")
    try:
        candidates += sorted(runtime.glob("sway-ipc.*.sock"), key=lambda p: p.stat().st_mtime, reverse=True)
    except OSError:
        pass
    for p in candidates:
        try:
            if p.is_socket():
                return str(p)
        except OSError:
            continue
    return None


def detect_backend(runner: CommandRunner) -> Backend:
    """
    Pick the backend from the running display server: sway first, then Xorg.
    """

    if _process_running(runner, "sway"):
        sock = detect_sway_socket()
        if sock:
            env = dict(runner.env or {})
            env["SWAYSOCK"] = sock
            runner = CommandRunner(timeout_s=runner.timeout_s, env=env)
        return SwayBackend(runner, socket=sock)
    if _process_running(runner, "Xorg"):
        return X11Backend(runner)
    raise BackendError("Unable to find Sway or Xorg processes")
