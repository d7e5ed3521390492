import pytest

from rot8_orientation import (
    INVERTED,
    NORMAL,
    ORIENTATIONS,
    ROTATED_LEFT,
    ROTATED_RIGHT,
    Orientation,
    RawSample,
    classify,
    from_sway_transform,
    from_xrandr_rotation,
    human_normal,
    nearest,
    normalize,
)


@pytest.mark.parametrize("orientation", ORIENTATIONS, ids=lambda o: o.name)
def test_reference_vector_classifies_as_itself(orientation: Orientation) -> None:
    x, y = orientation.vector
    assert classify(RawSample(int(x), int(y)), threshold=0.5) is orientation


def test_table_order_is_normal_inverted_left_right() -> None:
    assert ORIENTATIONS == (NORMAL, INVERTED, ROTATED_LEFT, ROTATED_RIGHT)


@pytest.mark.parametrize("scale", [0.01, 0.5, 1.0, 2.0, 10.0])
def test_classification_independent_of_scale(scale: float) -> None:
    counts = int(round(10.0 / scale))  # ~1 g for this scale
    assert classify(RawSample(0, -counts), scale=scale) is NORMAL
    assert classify(RawSample(0, counts), scale=scale) is INVERTED
    assert classify(RawSample(-counts, 0), scale=scale) is ROTATED_LEFT
    assert classify(RawSample(counts, 0), scale=scale) is ROTATED_RIGHT


def test_scaled_sample_near_gravity() -> None:
    # 0.0098 m/s^2 per count, 1 g ~ 1000 counts.
    sample = RawSample(x=-1000, y=30)
    assert classify(sample, scale=0.0098, threshold=0.5) is ROTATED_LEFT


def test_no_scale_uses_raw_counts() -> None:
    assert normalize(RawSample(3, -2)) == (3.0, -2.0)


def test_scale_divides_by_ten() -> None:
    assert normalize(RawSample(10, -20), scale=2.0) == pytest.approx((2.0, -4.0))


def test_flip_y_negates_only_y() -> None:
    for x, y in [(0, 1), (0, -1), (1, 0), (-1, 0), (1, 1)]:
        assert classify(RawSample(x, y), flip_y=True) == classify(RawSample(x, -y), flip_y=False)
    assert normalize(RawSample(4, 7), flip_y=True) == (4.0, -7.0)


def test_rotate_90_turns_clockwise_before_matching() -> None:
    assert normalize(RawSample(0, -1), rotate_90=True) == (-1.0, 0.0)
    assert classify(RawSample(0, -1), rotate_90=True) is ROTATED_LEFT


def test_flip_then_rotate() -> None:
    # flip: (1, 2) -> (1, -2); rotate: -> (-2, -1)
    assert normalize(RawSample(1, 2), flip_y=True, rotate_90=True) == (-2.0, -1.0)


def test_first_match_wins_when_balls_overlap() -> None:
    # (-0.5, -0.5) is 0.5 from both normal (0, -1) and rotated-left (-1, 0).
    vec = (-0.5, -0.5)
    assert nearest(vec, 0.6) is NORMAL
    assert nearest(vec, 0.6, (ROTATED_LEFT, NORMAL)) is ROTATED_LEFT


def test_threshold_is_strict() -> None:
    # Distance to normal is exactly 0.5.
    assert nearest((-0.5, -0.5), 0.5) is None


def test_ambiguous_sample_keeps_previous() -> None:
    flat = RawSample(0, 0)
    assert classify(flat, previous=INVERTED) is INVERTED
    assert classify(flat) is None


def test_human_normal() -> None:
    assert human_normal(False) is NORMAL
    assert human_normal(True) is ROTATED_LEFT


def test_label_lookups() -> None:
    assert from_sway_transform("90") is ROTATED_LEFT
    assert from_sway_transform("flipped-90") is None
    assert from_xrandr_rotation("left") is ROTATED_RIGHT
    assert from_xrandr_rotation("normal ") is NORMAL
    assert from_xrandr_rotation("sideways") is None


def test_matrix_args() -> None:
    assert ROTATED_LEFT.matrix_args() == ["0", "1", "0", "-1", "0", "1", "0", "0", "1"]
    assert all(len(o.matrix) == 9 for o in ORIENTATIONS)
