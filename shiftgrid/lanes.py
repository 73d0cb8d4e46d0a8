from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from shiftgrid.models import Shift


class LanePolicy(StrEnum):
    GREEDY = "greedy"  # lowest free lane among truly overlapping shifts
    SEPARATE = "separate"  # one lane per shift, in start order


@dataclass(frozen=True)
class LaneAssignment:
    shift: Shift
    lane: int
    total_lanes: int


def _sort_key(shift: Shift):
    return (shift.start_at, shift.end_at, shift.id)


def _overlaps(a: Shift, b: Shift) -> bool:
    return a.start_at < b.end_at and b.start_at < a.end_at


def assign_lanes(
    shifts: Iterable[Shift], policy: LanePolicy = LanePolicy.GREEDY
) -> list[LaneAssignment]:
    """
    Tag each shift with a rendering lane so overlapping shifts never share one.

    GREEDY is interval-graph colouring in start order: every shift takes the
    lowest lane not held by an already placed shift it overlaps. Adjacent
    shifts (one ends when the next starts) may share a lane.
    """
    ordered = sorted(shifts, key=_sort_key)
    if not ordered:
        return []

    if policy == LanePolicy.SEPARATE:
        return [
            LaneAssignment(shift=s, lane=i, total_lanes=len(ordered))
            for i, s in enumerate(ordered)
        ]

    placed: list[tuple[Shift, int]] = []
    for shift in ordered:
        taken = {lane for other, lane in placed if _overlaps(other, shift)}
        lane = 0
        while lane in taken:
            lane += 1
        placed.append((shift, lane))

    total = len({lane for _, lane in placed})
    return [
        LaneAssignment(shift=s, lane=lane, total_lanes=total)
        for s, lane in placed
    ]


def lane_groups(assignments: Iterable[LaneAssignment]) -> dict[int, list[Shift]]:
    groups: dict[int, list[Shift]] = {}
    for a in assignments:
        groups.setdefault(a.lane, []).append(a.shift)
    return dict(sorted(groups.items()))
