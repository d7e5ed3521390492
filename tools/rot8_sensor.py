#!/usr/bin/env python3
"""
Read the accelerometer through the kernel iio sysfs interface.

Repo source: rot8/tools/rot8_sensor.py

Layout (one directory per iio device):
  /sys/bus/iio/devices/iio:device0/in_accel_x_raw
  /sys/bus/iio/devices/iio:device0/in_accel_y_raw
  /sys/bus/iio/devices/iio:device0/in_accel_z_raw   (ignored)
  /sys/bus/iio/devices/iio:device0/in_accel_scale   (optional)

Reads are best-effort: a glitchy sample reads as 0 and the next poll corrects
it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rot8_orientation import RawSample


DEFAULT_IIO_ROOT = Path("/sys/bus/iio/devices")


def _read_int_file(path: Path) -> int | None:
    try:
        s = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def _read_float_file(path: Path) -> float | None:
    try:
        s = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    try:
        return float(s)
    except ValueError:
        return None


@dataclass(frozen=True)
class AccelPaths:
    device: Path
    x: Path
    y: Path
    z: Path | None
    scale: Path | None

    def to_json(self) -> dict[str, Any]:
        return {
            "device": str(self.device),
            "x": str(self.x),
            "y": str(self.y),
            "z": str(self.z) if self.z else None,
            "scale": str(self.scale) if self.scale else None,
        }


def discover_accelerometer(root: Path = DEFAULT_IIO_ROOT) -> AccelPaths | None:
    """
    Return the first iio device (sorted by name) exposing both X and Y raw
    accelerometer channels.
    """

    try:
        devices = sorted(p for p in root.glob("iio:device*") if p.is_dir())
    except OSError:
        return None

    for device in devices:
        axes: dict[str, Path] = {}
        for raw in sorted(device.glob("in_accel_*_raw")):
            axis = raw.name[len("in_accel_") : -len("_raw")]
            if axis in ("x", "y", "z"):
                axes[axis] = raw
        if "x" not in axes or "y" not in axes:
            continue
        scale = device / "in_accel_scale"
        return AccelPaths(
            device=device,
            x=axes["x"],
            y=axes["y"],
            z=axes.get("z"),
            scale=scale if scale.exists() else None,
        )
    return None


class SensorReader:
    def __init__(self, paths: AccelPaths) -> None:
        self.paths = paths

    def read(self) -> RawSample:
        x = _read_int_file(self.paths.x)
        y = _read_int_file(self.paths.y)
        return RawSample(x=x or 0, y=y or 0)

    def read_scale(self) -> float | None:
        if self.paths.scale is None:
            return None
        return _read_float_file(self.paths.scale)
