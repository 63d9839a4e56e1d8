from __future__ import annotations

from dice import (
    _matches_range, degree_of_success, pick_distinct, pick_index, roll_check, roll_dice,
    roll_reroll_six,
)


def test_roll_dice_sums_dice_and_modifier(scripted) -> None:
    result = roll_dice("2d6+3", "test", scripted([4, 5]))
    assert result["dice"] == [4, 5]
    assert result["modifier"] == 3
    assert result["total"] == 12


def test_roll_dice_rejects_garbage() -> None:
    assert "error" in roll_dice("two dice")


def test_natural_twenty_and_one_override_totals(scripted) -> None:
    assert roll_check(-10, 30, rng=scripted([20]))["tier"] == "critical_success"
    assert roll_check(50, 10, rng=scripted([1]))["tier"] == "critical_failure"


def test_bands_split_failure_by_margin(scripted) -> None:
    assert roll_check(0, 15, rng=scripted([11]), bands=True)["tier"] == "failure"
    assert roll_check(0, 15, rng=scripted([10]), bands=True)["tier"] == "critical_failure"
    assert roll_check(0, 15, rng=scripted([10]))["tier"] == "failure"


def test_degree_of_success_meets_dc() -> None:
    assert degree_of_success(10, 15, 15) == "success"
    assert degree_of_success(10, 14, 15) == "failure"


def test_reroll_six_keeps_last_die(scripted) -> None:
    result = roll_reroll_six(rng=scripted([6, 6, 3]))
    assert result["total"] == 3
    assert result["dice"] == [6, 6, 3]


def test_pick_index_is_zero_based(scripted) -> None:
    assert pick_index(3, rng=scripted([2]))["index"] == 1
    assert "error" in pick_index(0)


def test_pick_distinct_never_repeats(scripted) -> None:
    # first draw takes index 0 of [0,1,2]; second takes index 0 of [1,2]
    assert pick_distinct(3, 2, rng=scripted([1, 1])) == [0, 1]
    assert pick_distinct(1, 2, rng=scripted([1])) == [0]


def test_matches_range() -> None:
    assert _matches_range(4, "1-4")
    assert not _matches_range(5, "1-4")
    assert _matches_range(150, "120-999")
    assert _matches_range(7, "7")
