"""
Compose the schedule grid for a visible date range.

The board is rebuilt from the fetched collections on every request; nothing
here is stored.
"""

from collections.abc import Iterable
from datetime import UTC, date, timedelta, tzinfo
from enum import StrEnum

from shiftgrid.intervals import local_date
from shiftgrid.lanes import LanePolicy
from shiftgrid.layout import (
    DEFAULT_TIMELINE,
    BlockLayout,
    Timeline,
    day_view,
    timeline_bounds,
    week_view,
)
from shiftgrid.models import (
    CamelModel,
    Employee,
    EmployeeStatus,
    Holiday,
    Shift,
    VacationRequest,
    VacationStatus,
)


class ViewMode(StrEnum):
    DAY = "day"
    WEEK = "week"


class CellState(StrEnum):
    NORMAL = "normal"
    HOLIDAY = "holiday"
    VACATION = "vacation"


class WeeklyHours(CamelModel):
    hours: int
    minutes: int
    formatted: str


class BoardCell(CamelModel):
    date: date
    state: CellState
    holiday_name: str | None = None
    timeline_start: int
    timeline_end: int
    blocks: list[BlockLayout]


class BoardRow(CamelModel):
    employee_id: int
    full_name: str
    weekly_hours: WeeklyHours
    cells: list[BoardCell]


class Board(CamelModel):
    start: date
    end: date
    view: ViewMode
    rows: list[BoardRow]


def week_start_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def format_minutes(total_minutes: float) -> WeeklyHours:
    hours = int(total_minutes // 60)
    minutes = round(total_minutes % 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    formatted = f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    return WeeklyHours(hours=hours, minutes=minutes, formatted=formatted)


class ScheduleBoard:
    def __init__(
        self,
        shifts: Iterable[Shift],
        employees: Iterable[Employee],
        vacations: Iterable[VacationRequest] = (),
        holidays: Iterable[Holiday] = (),
        *,
        tz: tzinfo = UTC,
        policy: LanePolicy = LanePolicy.GREEDY,
        default_timeline: Timeline = DEFAULT_TIMELINE,
    ) -> None:
        self.shifts = list(shifts)
        self.employees = [e for e in employees if e.status == EmployeeStatus.ACTIVE]
        self.vacations = [
            v for v in vacations if v.status == VacationStatus.APPROVED
        ]
        self.holidays = list(holidays)
        self.tz = tz
        self.policy = policy
        self.default_timeline = default_timeline

    def holiday_on(self, day: date) -> Holiday | None:
        return next((h for h in self.holidays if h.covers(day)), None)

    def vacation_on(self, employee_id: int, day: date) -> VacationRequest | None:
        return next(
            (
                v
                for v in self.vacations
                if v.user_id == employee_id and v.covers(day)
            ),
            None,
        )

    def shifts_on(self, day: date) -> list[Shift]:
        return [s for s in self.shifts if local_date(s.start_at, self.tz) == day]

    def shifts_for(self, employee_id: int, day: date) -> list[Shift]:
        return [s for s in self.shifts_on(day) if s.employee_id == employee_id]

    def timeline_for(self, day: date) -> Timeline:
        # shared by every employee so all rows use the same scale
        return timeline_bounds(self.shifts_on(day), self.tz, self.default_timeline)

    def cell(
        self,
        employee_id: int,
        day: date,
        view: ViewMode = ViewMode.WEEK,
        timeline: Timeline | None = None,
    ) -> BoardCell:
        holiday = self.holiday_on(day)
        if holiday is not None:
            state = CellState.HOLIDAY
        elif self.vacation_on(employee_id, day) is not None:
            state = CellState.VACATION
        else:
            state = CellState.NORMAL

        timeline = timeline or self.timeline_for(day)
        shifts = self.shifts_for(employee_id, day)
        if view == ViewMode.DAY:
            blocks = day_view(shifts, timeline, self.tz, self.policy)
        else:
            blocks = week_view(shifts, self.tz)

        return BoardCell(
            date=day,
            state=state,
            holiday_name=holiday.name if holiday else None,
            timeline_start=timeline.start_hour,
            timeline_end=timeline.end_hour,
            blocks=blocks,
        )

    def weekly_hours(self, employee_id: int, day: date) -> WeeklyHours:
        start = week_start_of(day)
        end = start + timedelta(days=6)
        total = sum(
            s.duration_minutes
            for s in self.shifts
            if s.employee_id == employee_id
            and start <= local_date(s.start_at, self.tz) <= end
        )
        return format_minutes(total)

    def build(self, start: date, end: date, view: ViewMode = ViewMode.WEEK) -> Board:
        days = [start + timedelta(days=i) for i in range((end - start).days + 1)]
        timelines = {day: self.timeline_for(day) for day in days}
        rows = [
            BoardRow(
                employee_id=e.id,
                full_name=e.full_name,
                weekly_hours=self.weekly_hours(e.id, start),
                cells=[self.cell(e.id, day, view, timelines[day]) for day in days],
            )
            for e in sorted(self.employees, key=lambda e: e.full_name)
        ]
        return Board(start=start, end=end, view=view, rows=rows)
