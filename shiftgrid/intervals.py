"""
Interval math for shifts: time-of-day parsing, overnight rollover and the
advisory same-day conflict check.

Times of day are compared as minutes since midnight. A window whose end is
not after its start crosses midnight and its end is pushed into the next day
(``+ 1440``). Intervals are half-open, so back-to-back shifts never conflict.
"""

from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from shiftgrid.errors import InvalidTimeError
from shiftgrid.models import Shift

MINUTES_PER_DAY = 24 * 60

# offsets used to project an overnight tail back onto the start day
_DAY_OFFSETS = (-MINUTES_PER_DAY, 0, MINUTES_PER_DAY)


def parse_time_of_day(value: str) -> int:
    try:
        hours, minutes = (int(part) for part in value.split(":"))
    except (AttributeError, ValueError):
        raise InvalidTimeError(f"invalid time of day: {value!r}") from None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InvalidTimeError(f"time of day out of range: {value!r}")
    return hours * 60 + minutes


def local_date(moment: datetime, tz: tzinfo = UTC) -> date:
    return moment.astimezone(tz).date()


def minutes_of(moment: datetime, tz: tzinfo = UTC) -> int:
    local = moment.astimezone(tz)
    return local.hour * 60 + local.minute


def format_hhmm(moment: datetime, tz: tzinfo = UTC) -> str:
    return moment.astimezone(tz).strftime("%H:%M")


def window_minutes(start: int, end: int) -> tuple[int, int]:
    if end <= start:
        end += MINUTES_PER_DAY
    return start, end


def intervals_overlap(s1: int, e1: int, s2: int, e2: int) -> bool:
    return s1 < e2 and s2 < e1


def windows_conflict(first: tuple[int, int], second: tuple[int, int]) -> bool:
    """
    Same-day wall-clock conflict between two rolled-over windows.

    Besides the direct comparison, each window is also compared against the
    other shifted by a whole day, so the after-midnight tail of an overnight
    shift (22:00-06:00) still collides with an early shift (05:00-09:00)
    booked on the same date.
    """
    s1, e1 = first
    s2, e2 = second
    return any(
        intervals_overlap(s1, e1, s2 + offset, e2 + offset)
        for offset in _DAY_OFFSETS
    )


def datetime_window(
    start_at: datetime, end_at: datetime, tz: tzinfo = UTC
) -> tuple[int, int]:
    start = minutes_of(start_at, tz)
    end = minutes_of(end_at, tz)
    if local_date(start_at, tz) != local_date(end_at, tz):
        end += MINUTES_PER_DAY
    return window_minutes(start, end)


def shift_window(shift: Shift, tz: tzinfo = UTC) -> tuple[int, int]:
    return datetime_window(shift.start_at, shift.end_at, tz)


def shifts_starting_on(
    shifts: Iterable[Shift],
    employee_id: int,
    target_date: date,
    tz: tzinfo = UTC,
    exclude_shift_id: int | None = None,
) -> list[Shift]:
    return [
        s
        for s in shifts
        if s.employee_id == employee_id
        and s.id != exclude_shift_id
        and local_date(s.start_at, tz) == target_date
    ]


def find_conflicts(
    shifts: Iterable[Shift],
    employee_id: int,
    target_date: date,
    start_time: str,
    end_time: str,
    exclude_shift_id: int | None = None,
    tz: tzinfo = UTC,
) -> list[Shift]:
    """
    Existing shifts of ``employee_id`` starting on ``target_date`` that
    overlap the ``start_time``-``end_time`` window.

    Only the start date of existing shifts is considered, so a shift that
    started the previous evening is not seen here.
    """
    candidate = window_minutes(
        parse_time_of_day(start_time), parse_time_of_day(end_time)
    )
    return _conflicting(
        shifts, employee_id, target_date, candidate, tz, exclude_shift_id
    )


def find_window_conflicts(
    shifts: Iterable[Shift],
    employee_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_shift_id: int | None = None,
    tz: tzinfo = UTC,
) -> list[Shift]:
    """``find_conflicts`` for a window given as absolute datetimes."""
    return _conflicting(
        shifts,
        employee_id,
        local_date(start_at, tz),
        datetime_window(start_at, end_at, tz),
        tz,
        exclude_shift_id,
    )


def _conflicting(shifts, employee_id, target_date, candidate, tz, exclude_shift_id):
    return [
        s
        for s in shifts_starting_on(
            shifts, employee_id, target_date, tz, exclude_shift_id
        )
        if windows_conflict(candidate, shift_window(s, tz))
    ]


def has_time_conflict(
    shifts: Iterable[Shift],
    employee_id: int,
    target_date: date,
    start_time: str,
    end_time: str,
    exclude_shift_id: int | None = None,
    tz: tzinfo = UTC,
) -> bool:
    return bool(
        find_conflicts(
            shifts,
            employee_id,
            target_date,
            start_time,
            end_time,
            exclude_shift_id=exclude_shift_id,
            tz=tz,
        )
    )


def build_window(
    target_date: date, start_time: str, end_time: str, tz: tzinfo = UTC
) -> tuple[datetime, datetime]:
    start_min = parse_time_of_day(start_time)
    end_min = parse_time_of_day(end_time)
    start_at = datetime.combine(
        target_date, time(start_min // 60, start_min % 60), tzinfo=tz
    )
    end_at = datetime.combine(
        target_date, time(end_min // 60, end_min % 60), tzinfo=tz
    )
    if end_at <= start_at:
        end_at += timedelta(days=1)
    return start_at, end_at


def move_to_date(
    shift: Shift, target_date: date, tz: tzinfo = UTC
) -> tuple[datetime, datetime]:
    """The same wall-clock window as ``shift``, re-anchored on ``target_date``."""
    return build_window(
        target_date,
        format_hhmm(shift.start_at, tz),
        format_hhmm(shift.end_at, tz),
        tz,
    )


def find_overlapping_shifts(
    shifts: Iterable[Shift],
    employee_id: int,
    start_at: datetime,
    end_at: datetime,
    target_date: date,
    tz: tzinfo = UTC,
    exclude_shift_id: int | None = None,
) -> list[Shift]:
    """
    Absolute-time overlap check used when dropping a shift onto a cell.
    Shifts that start or end on ``target_date`` are candidates.
    """
    found = []
    for s in shifts:
        if s.employee_id != employee_id or s.id == exclude_shift_id:
            continue
        touches_day = target_date in (
            local_date(s.start_at, tz),
            local_date(s.end_at, tz),
        )
        if touches_day and s.start_at < end_at and start_at < s.end_at:
            found.append(s)
    return found
