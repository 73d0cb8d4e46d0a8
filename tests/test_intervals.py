from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from conftest import ALICE, BRUNO, at, make_shift
from shiftgrid.errors import InvalidTimeError
from shiftgrid.intervals import (
    build_window,
    find_conflicts,
    find_overlapping_shifts,
    find_window_conflicts,
    has_time_conflict,
    intervals_overlap,
    move_to_date,
    parse_time_of_day,
    window_minutes,
    windows_conflict,
)

MONDAY = date(2024, 6, 10)


@pytest.mark.parametrize(
    "value, expected", [("00:00", 0), ("09:30", 570), ("23:59", 1439)]
)
def test_parse_time_of_day(value, expected):
    assert parse_time_of_day(value) == expected


@pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "9", ""])
def test_parse_time_of_day_rejects_garbage(value):
    with pytest.raises(InvalidTimeError):
        parse_time_of_day(value)


def test_window_rolls_over_when_end_not_after_start():
    assert window_minutes(1320, 360) == (1320, 1800)
    assert window_minutes(600, 600) == (600, 2040)
    assert window_minutes(540, 1020) == (540, 1020)


def test_overlap_is_exactly_the_half_open_rule():
    points = range(0, 1500, 90)
    for s1 in points:
        for e1 in points:
            for s2 in points:
                for e2 in points:
                    expected = s1 < e2 and s2 < e1
                    assert intervals_overlap(s1, e1, s2, e2) is expected


def test_back_to_back_windows_never_conflict():
    assert not windows_conflict((540, 1020), (1020, 1200))
    assert not windows_conflict((1020, 1200), (540, 1020))
    # overnight shift ending when the next one starts
    assert not windows_conflict((1320, 1800), (360, 840))


def test_same_day_windows_agree_with_overlap_rule():
    for first, second in [
        ((540, 1020), (960, 1200)),
        ((540, 600), (600, 660)),
        ((0, 60), (1380, 1440)),
        ((480, 960), (720, 840)),
    ]:
        assert windows_conflict(first, second) is intervals_overlap(*first, *second)


def test_existing_day_shift_blocks_overlapping_candidate():
    shifts = [make_shift(1, ALICE, at(10, 9), at(10, 17))]

    assert has_time_conflict(shifts, ALICE, MONDAY, "16:00", "20:00")
    assert not has_time_conflict(shifts, ALICE, MONDAY, "17:00", "20:00")
    assert not has_time_conflict(shifts, BRUNO, MONDAY, "16:00", "20:00")
    assert not has_time_conflict(shifts, ALICE, date(2024, 6, 11), "16:00", "20:00")


def test_overnight_shift_tail_blocks_early_shift_same_date():
    shifts = [make_shift(1, ALICE, at(10, 22), at(11, 6))]

    assert has_time_conflict(shifts, ALICE, MONDAY, "05:00", "09:00")
    assert not has_time_conflict(shifts, ALICE, MONDAY, "06:00", "09:00")
    assert has_time_conflict(shifts, ALICE, MONDAY, "23:00", "01:00")


def test_overnight_candidate_against_day_shift():
    shifts = [make_shift(1, ALICE, at(10, 18), at(10, 23))]

    assert has_time_conflict(shifts, ALICE, MONDAY, "22:00", "06:00")
    assert not has_time_conflict(shifts, ALICE, MONDAY, "23:00", "06:00")


def test_excluded_shift_is_ignored_for_edit_in_place():
    shifts = [
        make_shift(1, ALICE, at(10, 9), at(10, 17)),
        make_shift(2, ALICE, at(10, 18), at(10, 20)),
    ]

    assert not has_time_conflict(
        shifts, ALICE, MONDAY, "08:00", "16:00", exclude_shift_id=1
    )
    assert has_time_conflict(
        shifts, ALICE, MONDAY, "08:00", "19:00", exclude_shift_id=1
    )


def test_only_shifts_starting_on_target_date_are_considered():
    # started Sunday night, runs into Monday morning
    shifts = [make_shift(1, ALICE, at(9, 22), at(10, 6))]

    assert not has_time_conflict(shifts, ALICE, MONDAY, "05:00", "09:00")


def test_find_conflicts_returns_offending_shifts():
    shifts = [
        make_shift(1, ALICE, at(10, 9), at(10, 12)),
        make_shift(2, ALICE, at(10, 13), at(10, 15)),
        make_shift(3, ALICE, at(10, 18), at(10, 20)),
    ]

    found = find_conflicts(shifts, ALICE, MONDAY, "11:00", "14:00")

    assert [s.id for s in found] == [1, 2]


def test_find_window_conflicts_uses_local_start_date():
    madrid = ZoneInfo("Europe/Madrid")
    # 23:30 UTC on the 9th is already the 10th in Madrid
    shifts = [make_shift(1, ALICE, at(9, 23, 30), at(10, 4))]
    start = datetime(2024, 6, 10, 3, 0, tzinfo=madrid)
    end = datetime(2024, 6, 10, 5, 0, tzinfo=madrid)

    assert [s.id for s in find_window_conflicts(shifts, ALICE, start, end, tz=madrid)] == [1]
    assert find_window_conflicts(shifts, ALICE, start, end, tz=UTC) == []


def test_build_window_rolls_overnight_end_to_next_day():
    start, end = build_window(MONDAY, "22:00", "06:00")

    assert start == at(10, 22)
    assert end == at(11, 6)
    assert end - start == timedelta(hours=8)


def test_build_window_in_company_timezone():
    madrid = ZoneInfo("Europe/Madrid")
    start, end = build_window(MONDAY, "09:00", "17:00", madrid)

    assert start.astimezone(UTC) == at(10, 7)
    assert end.astimezone(UTC) == at(10, 15)


def test_move_to_date_keeps_wall_clock_window():
    shift = make_shift(1, ALICE, at(10, 22), at(11, 6))

    start, end = move_to_date(shift, date(2024, 6, 12))

    assert (start, end) == (at(12, 22), at(13, 6))


def test_find_overlapping_shifts_sees_shifts_ending_on_target_date():
    shifts = [
        make_shift(1, ALICE, at(9, 22), at(10, 6)),
        make_shift(2, ALICE, at(10, 12), at(10, 14)),
        make_shift(3, BRUNO, at(10, 5), at(10, 9)),
    ]

    found = find_overlapping_shifts(shifts, ALICE, at(10, 5), at(10, 13), MONDAY)

    assert [s.id for s in found] == [1, 2]
    assert find_overlapping_shifts(
        shifts, ALICE, at(10, 5), at(10, 13), MONDAY, exclude_shift_id=1
    ) == [shifts[1]]
