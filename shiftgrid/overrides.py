"""
Plan how existing shifts give way when a new shift is forced over them.

Existing shifts are deleted, trimmed or split around the new window. Pieces
shorter than ``MIN_SHIFT_DURATION`` are dropped rather than kept as slivers.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo

from shiftgrid.intervals import datetime_window, local_date, windows_conflict
from shiftgrid.models import Shift, ShiftCreate

MIN_SHIFT_DURATION = timedelta(minutes=15)


@dataclass(frozen=True)
class ShiftWindow:
    id: int
    start_at: datetime
    end_at: datetime


@dataclass
class OverridePlan:
    to_create: list[ShiftCreate] = field(default_factory=list)
    to_update: list[ShiftWindow] = field(default_factory=list)
    to_delete: list[int] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not (self.to_update or self.to_delete)


def _tail(existing: Shift, start_at: datetime) -> ShiftCreate:
    return ShiftCreate(
        employee_id=existing.employee_id,
        start_at=start_at,
        end_at=existing.end_at,
        title=existing.title,
        location=existing.location,
        notes=existing.notes,
        color=existing.color,
    )


def plan_override(
    new_shift: ShiftCreate, existing: Iterable[Shift], tz: tzinfo = UTC
) -> OverridePlan:
    """
    The new shift itself is always the first entry of ``to_create``.

    Existing shifts are first adapted around the new window in absolute
    time. Whatever still collides with it under the same-day wall-clock
    rule afterwards (the tail of an overnight shift booked on the same
    date) is deleted, so the result never holds a pair that a plain create
    would refuse.
    """
    existing = list(existing)
    plan = OverridePlan(to_create=[new_shift])
    new_start, new_end = new_shift.start_at, new_shift.end_at

    for shift in existing:
        start, end = shift.start_at, shift.end_at
        if not (start < new_end and new_start < end):
            continue

        if new_start <= start and end <= new_end:
            plan.to_delete.append(shift.id)
            continue

        if start < new_start:
            # head survives up to the new start; a tail may survive after it
            if new_start - start >= MIN_SHIFT_DURATION:
                plan.to_update.append(ShiftWindow(shift.id, start, new_start))
            else:
                plan.to_delete.append(shift.id)
            if end > new_end and end - new_end >= MIN_SHIFT_DURATION:
                plan.to_create.append(_tail(shift, new_end))
            continue

        # starts inside the new window and runs past its end
        if end - new_end >= MIN_SHIFT_DURATION:
            plan.to_update.append(ShiftWindow(shift.id, new_end, end))
        else:
            plan.to_delete.append(shift.id)

    _drop_clock_clashes(plan, new_shift, existing, tz)
    return plan


def _drop_clock_clashes(
    plan: OverridePlan, new_shift: ShiftCreate, existing: list[Shift], tz: tzinfo
) -> None:
    candidate = datetime_window(new_shift.start_at, new_shift.end_at, tz)
    target = local_date(new_shift.start_at, tz)
    updates = {w.id: w for w in plan.to_update}

    for shift in existing:
        if shift.id in plan.to_delete or shift.employee_id != new_shift.employee_id:
            continue
        window = updates.get(shift.id)
        start, end = (
            (window.start_at, window.end_at) if window else (shift.start_at, shift.end_at)
        )
        if local_date(start, tz) != target:
            continue
        if windows_conflict(candidate, datetime_window(start, end, tz)):
            if window is not None:
                plan.to_update.remove(window)
            plan.to_delete.append(shift.id)
