import pytest

from rot8_keyboard import (
    KEYBOARD_DISABLED,
    KEYBOARD_ENABLED,
    integrated_keyboard_action,
    keyboard_action,
    parse_keyboard_mode,
    should_suppress,
)
from rot8_orientation import INVERTED, NORMAL, ROTATED_LEFT, ROTATED_RIGHT


def attached() -> bool:
    return True


def detached() -> bool:
    return False


def never_checked() -> bool:
    raise AssertionError("attachment check must not run outside detachable mode")


def test_detachable_locks_at_normal_while_attached() -> None:
    assert should_suppress("detachable", attached=attached, old=NORMAL, new=ROTATED_LEFT, human_normal=NORMAL)


def test_detachable_allows_return_to_normal() -> None:
    assert not should_suppress("detachable", attached=attached, old=ROTATED_LEFT, new=NORMAL, human_normal=NORMAL)


def test_detachable_blocks_non_normal_to_non_normal() -> None:
    assert should_suppress("detachable", attached=attached, old=ROTATED_LEFT, new=INVERTED, human_normal=NORMAL)


def test_detachable_without_keyboard_rotates_freely() -> None:
    assert not should_suppress("detachable", attached=detached, old=NORMAL, new=ROTATED_RIGHT, human_normal=NORMAL)


def test_detachable_respects_shifted_human_normal() -> None:
    assert should_suppress(
        "detachable", attached=attached, old=ROTATED_LEFT, new=NORMAL, human_normal=ROTATED_LEFT
    )
    assert not should_suppress(
        "detachable", attached=attached, old=NORMAL, new=ROTATED_LEFT, human_normal=ROTATED_LEFT
    )


def test_detachable_unknown_start_state() -> None:
    assert not should_suppress("detachable", attached=attached, old=None, new=NORMAL, human_normal=NORMAL)
    assert should_suppress("detachable", attached=attached, old=None, new=INVERTED, human_normal=NORMAL)


@pytest.mark.parametrize("mode", ["integrated", "none"])
def test_other_modes_never_suppress(mode: str) -> None:
    assert not should_suppress(mode, attached=never_checked, old=NORMAL, new=INVERTED, human_normal=NORMAL)


def test_integrated_action() -> None:
    assert integrated_keyboard_action(ROTATED_LEFT, NORMAL) == KEYBOARD_DISABLED
    assert integrated_keyboard_action(NORMAL, NORMAL) == KEYBOARD_ENABLED
    assert integrated_keyboard_action(ROTATED_LEFT, ROTATED_LEFT) == KEYBOARD_ENABLED


def test_keyboard_action_only_in_integrated_mode() -> None:
    assert keyboard_action("integrated", INVERTED, NORMAL) == "disabled"
    assert keyboard_action("detachable", INVERTED, NORMAL) is None
    assert keyboard_action("none", NORMAL, NORMAL) is None


def test_parse_keyboard_mode() -> None:
    assert parse_keyboard_mode(" Detachable ") == "detachable"
    with pytest.raises(ValueError):
        parse_keyboard_mode("folding")
