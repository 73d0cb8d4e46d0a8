"""
Percentage geometry for shift blocks.

Day view lays shifts out on a horizontal time axis: each lane is a row and
shifts sharing a lane are packed left to right. Week view has no time axis
inside a weekday cell, so every shift gets its own vertical slot.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, tzinfo

from shiftgrid.intervals import format_hhmm, local_date, minutes_of
from shiftgrid.lanes import LaneAssignment, LanePolicy, assign_lanes, lane_groups
from shiftgrid.models import CamelModel, Shift

MIN_WIDTH_PERCENT = 8.0
LANE_GAP_PERCENT = 0.5
WEEK_SLOT_GAP_PERCENT = 2.0


@dataclass(frozen=True)
class Timeline:
    start_hour: int = 6
    end_hour: int = 22

    @property
    def total_hours(self) -> int:
        return self.end_hour - self.start_hour

    def clamp(self, start: float, end: float) -> tuple[float, float]:
        start = min(max(start, self.start_hour), self.end_hour)
        end = min(max(end, start), self.end_hour)
        return start, end

    def to_percent(self, hour: float) -> float:
        return (hour - self.start_hour) / self.total_hours * 100


DEFAULT_TIMELINE = Timeline()


class BlockLayout(CamelModel):
    shift_id: int
    lane: int
    total_lanes: int
    left: float
    width: float
    top: float
    height: float
    label: str
    color: str


def timeline_bounds(
    shifts: Iterable[Shift],
    tz: tzinfo = UTC,
    default: Timeline = DEFAULT_TIMELINE,
) -> Timeline:
    """
    A shared timeline for every employee on one day: the earliest start hour
    and the latest end hour, with an hour of margin on each side.
    """
    shifts = list(shifts)
    if not shifts:
        return default

    min_hour, max_hour = 24, 0
    for s in shifts:
        start = s.start_at.astimezone(tz)
        end = s.end_at.astimezone(tz)
        min_hour = min(min_hour, start.hour)
        if local_date(s.end_at, tz) != local_date(s.start_at, tz):
            end_hour = 24
        else:
            end_hour = end.hour + 1 if end.minute > 0 else end.hour
        max_hour = max(max_hour, end_hour)

    return Timeline(start_hour=max(0, min_hour - 1), end_hour=min(24, max_hour + 1))


def clamp_hours(
    shift: Shift, timeline: Timeline, tz: tzinfo = UTC
) -> tuple[float, float]:
    start = minutes_of(shift.start_at, tz) / 60
    if local_date(shift.end_at, tz) != local_date(shift.start_at, tz):
        end = 24.0
    else:
        end = minutes_of(shift.end_at, tz) / 60
    return timeline.clamp(start, end)


def label_for(shift: Shift, tz: tzinfo = UTC) -> str:
    return f"{format_hhmm(shift.start_at, tz)}-{format_hhmm(shift.end_at, tz)}"


def _fit_widths(widths: Sequence[float], budget: float, floor: float) -> list[float]:
    # widths at the floor are pinned; the rest share one scale factor
    pinned = [False] * len(widths)
    fitted = list(widths)
    while True:
        free = [w for w, p in zip(widths, pinned) if not p]
        if not free:
            return fitted
        scale = (budget - floor * pinned.count(True)) / sum(free)
        newly_pinned = False
        for i, w in enumerate(widths):
            if pinned[i]:
                continue
            if w * scale < floor:
                pinned[i] = True
                fitted[i] = floor
                newly_pinned = True
            else:
                fitted[i] = w * scale
        if not newly_pinned:
            return fitted


def pack_lane(
    shifts: Iterable[Shift], timeline: Timeline, tz: tzinfo = UTC
) -> list[tuple[Shift, float, float]]:
    """
    Horizontal ``(shift, left, width)`` placement for shifts sharing a lane.

    A lone shift keeps its chronological position. With several shifts, every
    block gets a minimum width; when the blocks and the gaps between them
    no longer fit in 100%, widths are scaled down together. Blocks are then
    nudged right to clear their predecessor, and pulled left where needed so
    the last one still ends inside the lane.
    """
    ordered = sorted(shifts, key=lambda s: (s.start_at, s.end_at, s.id))
    raw = []
    for s in ordered:
        start, end = clamp_hours(s, timeline, tz)
        left = timeline.to_percent(start)
        width = timeline.to_percent(end) - left
        raw.append((s, left, width))

    if len(raw) <= 1:
        return raw

    n = len(raw)
    gaps = (n - 1) * LANE_GAP_PERCENT
    budget = 100 - gaps
    floor = min(MIN_WIDTH_PERCENT, budget / n)

    widths = [max(w, floor) for _, _, w in raw]
    if sum(widths) > budget:
        widths = _fit_widths(widths, budget, floor)

    packed = []
    prev_right = None
    remaining = sum(widths)
    for i, (s, left, _) in enumerate(raw):
        width = widths[i]
        max_left = 100 - remaining - (n - 1 - i) * LANE_GAP_PERCENT
        if prev_right is not None:
            left = max(left, prev_right + LANE_GAP_PERCENT)
        left = min(left, max_left)
        packed.append((s, left, width))
        prev_right = left + width
        remaining -= width
    return packed


def day_view(
    shifts: Iterable[Shift],
    timeline: Timeline = DEFAULT_TIMELINE,
    tz: tzinfo = UTC,
    policy: LanePolicy = LanePolicy.GREEDY,
) -> list[BlockLayout]:
    assignments = assign_lanes(shifts, policy)
    if not assignments:
        return []

    total = assignments[0].total_lanes
    height = 100 / total
    blocks = []
    for lane, lane_shifts in lane_groups(assignments).items():
        for s, left, width in pack_lane(lane_shifts, timeline, tz):
            blocks.append(
                BlockLayout(
                    shift_id=s.id,
                    lane=lane,
                    total_lanes=total,
                    left=left,
                    width=width,
                    top=lane * height,
                    height=height,
                    label=label_for(s, tz),
                    color=s.color,
                )
            )
    return sorted(blocks, key=lambda b: (b.lane, b.left))


def week_view(shifts: Iterable[Shift], tz: tzinfo = UTC) -> list[BlockLayout]:
    assignments: list[LaneAssignment] = assign_lanes(shifts, LanePolicy.SEPARATE)
    if not assignments:
        return []

    n = assignments[0].total_lanes
    height = (100 - (n - 1) * WEEK_SLOT_GAP_PERCENT) / n
    return [
        BlockLayout(
            shift_id=a.shift.id,
            lane=a.lane,
            total_lanes=n,
            left=0.0,
            width=100.0,
            top=a.lane * (height + WEEK_SLOT_GAP_PERCENT),
            height=height,
            label=label_for(a.shift, tz),
            color=a.shift.color,
        )
        for a in assignments
    ]
