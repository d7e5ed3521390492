#!/usr/bin/env python3
"""
Accelerometer sample -> display orientation.

Repo source: rot8/tools/rot8_orientation.py

Raw iio counts are scaled into roughly unit-gravity space and compared against
four reference vectors. The first reference closer than the threshold wins, so
the order of ORIENTATIONS matters: normal is checked first because it is the
common resting state.

Orientation names describe the device posture. The sway/xrandr labels are the
output transform that compensates for it, e.g. a device turned to the left
needs its content rotated clockwise (sway "90", xrandr "right").
"""

from __future__ import annotations

from dataclasses import dataclass


# in_accel_scale is reported in m/s^2 per count; dividing by ~g lands samples
# near the unit reference vectors.
SCALE_DIVISOR = 10.0
DEFAULT_THRESHOLD = 0.5


@dataclass(frozen=True)
class RawSample:
    x: int
    y: int


@dataclass(frozen=True)
class Orientation:
    name: str
    vector: tuple[float, float]
    sway_transform: str
    xrandr_rotation: str
    matrix: tuple[int, int, int, int, int, int, int, int, int]

    def matrix_args(self) -> list[str]:
        return [str(v) for v in self.matrix]


NORMAL = Orientation(
    name="normal",
    vector=(0.0, -1.0),
    sway_transform="normal",
    xrandr_rotation="normal",
    matrix=(1, 0, 0, 0, 1, 0, 0, 0, 1),
)
INVERTED = Orientation(
    name="inverted",
    vector=(0.0, 1.0),
    sway_transform="180",
    xrandr_rotation="inverted",
    matrix=(-1, 0, 1, 0, -1, 1, 0, 0, 1),
)
ROTATED_LEFT = Orientation(
    name="rotated-left",
    vector=(-1.0, 0.0),
    sway_transform="90",
    xrandr_rotation="right",
    matrix=(0, 1, 0, -1, 0, 1, 0, 0, 1),
)
ROTATED_RIGHT = Orientation(
    name="rotated-right",
    vector=(1.0, 0.0),
    sway_transform="270",
    xrandr_rotation="left",
    matrix=(0, -1, 1, 1, 0, 0, 0, 0, 1),
)

# Match order.
ORIENTATIONS: tuple[Orientation, ...] = (NORMAL, INVERTED, ROTATED_LEFT, ROTATED_RIGHT)


def normalize(
    sample: RawSample,
    *,
    scale: float | None = None,
    flip_y: bool = False,
    rotate_90: bool = False,
) -> tuple[float, float]:
    """
    Convert raw counts to a vector comparable with Orientation.vector.

    flip_y and rotate_90 correct for panels mounted upside down or sideways
    relative to the accelerometer (PineTab and friends).
    """

    if scale is not None:
        x = sample.x * scale / SCALE_DIVISOR
        y = sample.y * scale / SCALE_DIVISOR
    else:
        x = float(sample.x)
        y = float(sample.y)

    if flip_y:
        y = -y

    if rotate_90:
        # 90 degrees clockwise.
        x, y = y, -x

    return x, y


def squared_distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2


def nearest(
    vector: tuple[float, float],
    threshold: float,
    orientations: tuple[Orientation, ...] = ORIENTATIONS,
) -> Orientation | None:
    for orientation in orientations:
        if squared_distance(vector, orientation.vector) < threshold:
            return orientation
    return None


def classify(
    sample: RawSample,
    *,
    scale: float | None = None,
    flip_y: bool = False,
    rotate_90: bool = False,
    threshold: float = DEFAULT_THRESHOLD,
    previous: Orientation | None = None,
) -> Orientation | None:
    """
    Return the orientation for sample, or previous when no reference is within
    threshold (squared distance, not an angle).
    """

    vector = normalize(sample, scale=scale, flip_y=flip_y, rotate_90=rotate_90)
    found = nearest(vector, threshold)
    if found is None:
        return previous
    return found


def human_normal(rotate_90: bool) -> Orientation:
    """
    Orientation in which an attached keyboard is usable.
    """

    return ROTATED_LEFT if rotate_90 else NORMAL


def from_sway_transform(label: str) -> Orientation | None:
    for orientation in ORIENTATIONS:
        if orientation.sway_transform == label:
            return orientation
    return None


def from_xrandr_rotation(label: str) -> Orientation | None:
    label = label.strip()
    for orientation in ORIENTATIONS:
        if orientation.xrandr_rotation == label:
            return orientation
    return None
