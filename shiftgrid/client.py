"""
Async client for the work-shift API.

Reads are cached per query key and dropped after any write, so the next read
refetches. Conflict checks run against the last fetched snapshot and are
advisory only; the server repeats them.
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, timedelta, tzinfo
from enum import StrEnum
from typing import Any

import httpx

from shiftgrid.errors import ApiError, ShiftConflictError
from shiftgrid.intervals import build_window, find_conflicts, local_date
from shiftgrid.models import (
    Employee,
    Holiday,
    Shift,
    ShiftCreate,
    ShiftTimes,
    ShiftUpdate,
    VacationRequest,
)

logger = logging.getLogger(__name__)

SHIFTS_PATH = "/api/work-shifts/company"
UNKNOWN_ERROR = "Unknown error"


def date_for_weekday(anchor: date, weekday: int) -> date:
    """The date of ISO ``weekday`` (1 = Monday) in the week of ``anchor``."""
    if not 1 <= weekday <= 7:
        raise ValueError(f"weekday must be between 1 and 7, got {weekday}")
    return anchor + timedelta(days=weekday - anchor.isoweekday())


def _label(day: date) -> str:
    return day.strftime("%A %d/%m")


class BatchStatus(StrEnum):
    ALL_SUCCEEDED = "all_succeeded"
    ALL_FAILED = "all_failed"
    PARTIAL = "partial"


@dataclass(frozen=True)
class Outcome:
    date: date
    kind: str
    success: bool
    shift: Shift | None = None
    error: str | None = None
    conflicting_ids: tuple[int, ...] = ()


@dataclass
class BatchResult:
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[Outcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def status(self) -> BatchStatus:
        if not self.failed:
            return BatchStatus.ALL_SUCCEEDED
        if not self.succeeded:
            return BatchStatus.ALL_FAILED
        return BatchStatus.PARTIAL

    def summary(self) -> str:
        total = len(self.outcomes)
        failed_days = ", ".join(_label(o.date) for o in self.failed)
        if self.status == BatchStatus.ALL_SUCCEEDED:
            return f"All {total} shifts saved"
        if self.status == BatchStatus.ALL_FAILED:
            return f"No shift could be saved ({failed_days})"
        return f"{len(self.succeeded)} of {total} shifts saved; failed: {failed_days}"


class ShiftApiClient:
    def __init__(self, http: httpx.AsyncClient, *, tz: tzinfo = UTC) -> None:
        self.http = http
        self.tz = tz
        self.snapshot: list[Shift] = []
        self._cache: dict[tuple[str, tuple], Any] = {}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self.http.request(method, url, **kwargs)
        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(response.status_code, str(detail))
        return response

    async def _get(self, path: str, params: dict | None = None) -> Any:
        key = (path, tuple(sorted((params or {}).items())))
        if key not in self._cache:
            response = await self._request("GET", path, params=params)
            self._cache[key] = response.json()
        return self._cache[key]

    def invalidate(self, prefix: str = SHIFTS_PATH) -> None:
        for key in [k for k in self._cache if k[0].startswith(prefix)]:
            del self._cache[key]

    async def fetch_shifts(self, start: date, end: date) -> list[Shift]:
        data = await self._get(
            SHIFTS_PATH, {"start": start.isoformat(), "end": end.isoformat()}
        )
        self.snapshot = [Shift.model_validate(item) for item in data]
        return list(self.snapshot)

    async def fetch_employees(self) -> list[Employee]:
        data = await self._get("/api/employees")
        return [Employee.model_validate(item) for item in data]

    async def fetch_vacations(self) -> list[VacationRequest]:
        data = await self._get("/api/vacation-requests/company")
        return [VacationRequest.model_validate(item) for item in data]

    async def fetch_holidays(self) -> list[Holiday]:
        data = await self._get("/api/holidays/custom")
        return [Holiday.model_validate(item) for item in data]

    async def create_shift(self, payload: ShiftCreate) -> Shift:
        response = await self._request(
            "POST",
            "/api/work-shifts",
            json=payload.model_dump(mode="json", by_alias=True),
        )
        self.invalidate()
        return Shift.model_validate(response.json())

    async def update_shift(self, shift_id: int, payload: ShiftUpdate) -> Shift:
        response = await self._request(
            "PATCH",
            f"/api/work-shifts/{shift_id}",
            json=payload.model_dump(mode="json", by_alias=True, exclude_unset=True),
        )
        self.invalidate()
        return Shift.model_validate(response.json())

    async def delete_shift(self, shift_id: int) -> None:
        await self._request("DELETE", f"/api/work-shifts/{shift_id}")
        self.invalidate()

    async def duplicate_shift(self, shift_id: int, employee_id: int, day: date) -> Shift:
        response = await self._request(
            "POST",
            f"/api/work-shifts/{shift_id}/duplicate",
            json={"employeeId": employee_id, "date": day.isoformat()},
        )
        self.invalidate()
        return Shift.model_validate(response.json())

    def _create_payload(self, employee_id: int, day: date, times: ShiftTimes) -> ShiftCreate:
        start_at, end_at = build_window(day, times.start_time, times.end_time, self.tz)
        return ShiftCreate(
            employee_id=employee_id,
            start_at=start_at,
            end_at=end_at,
            title=times.title,
            location=times.location or None,
            notes=times.notes or None,
            color=times.color,
        )

    async def _settle(
        self, attempts: list[tuple[str, date, Awaitable[Shift]]]
    ) -> list[Outcome]:
        results = await asyncio.gather(
            *(call for _, _, call in attempts), return_exceptions=True
        )
        outcomes = []
        for (kind, day, _), result in zip(attempts, results):
            if isinstance(result, Shift):
                outcomes.append(Outcome(day, kind, True, shift=result))
            elif isinstance(result, ApiError):
                outcomes.append(Outcome(day, kind, False, error=result.detail))
            elif isinstance(result, Exception):
                logger.error("%s for %s failed unexpectedly: %r", kind, day, result)
                outcomes.append(Outcome(day, kind, False, error=UNKNOWN_ERROR))
            else:
                raise result
        return outcomes

    async def create_for_weekdays(
        self,
        employee_id: int,
        anchor: date,
        weekdays: Iterable[int],
        times: ShiftTimes,
        snapshot: Iterable[Shift] | None = None,
    ) -> BatchResult:
        """
        Create the same shift on several weekdays of ``anchor``'s week.

        Days that conflict with the snapshot are reported as failures and no
        request is sent for them; the remaining days are created concurrently.
        Successful creates are kept even when other days fail.
        """
        days = sorted({date_for_weekday(anchor, w) for w in weekdays})
        if not days:
            raise ValueError("select at least one day")
        known = list(self.snapshot if snapshot is None else snapshot)

        conflicts: list[Outcome] = []
        attempts = []
        for day in days:
            clashing = find_conflicts(
                known, employee_id, day, times.start_time, times.end_time, tz=self.tz
            )
            if clashing:
                conflicts.append(
                    Outcome(
                        day,
                        "create",
                        False,
                        error=str(ShiftConflictError(day)),
                        conflicting_ids=tuple(s.id for s in clashing),
                    )
                )
                continue
            payload = self._create_payload(employee_id, day, times)
            attempts.append(("create", day, self.create_shift(payload)))

        outcomes = await self._settle(attempts) + conflicts
        result = BatchResult(sorted(outcomes, key=lambda o: o.date))
        self.invalidate()
        logger.info(
            "batch create for employee %s: %s", employee_id, result.summary()
        )
        return result

    async def expand_shift(
        self,
        shift: Shift,
        weekdays: Iterable[int],
        times: ShiftTimes,
        snapshot: Iterable[Shift] | None = None,
    ) -> BatchResult:
        """
        Update ``shift`` on its own weekday and copy it to the other selected
        weekdays of the same week.

        Any conflict aborts the whole operation before a request is sent.
        """
        origin = local_date(shift.start_at, self.tz)
        days = sorted({date_for_weekday(origin, w) for w in weekdays})
        if not days:
            raise ValueError("select at least one day")
        known = list(self.snapshot if snapshot is None else snapshot)

        for day in days:
            clashing = find_conflicts(
                known,
                shift.employee_id,
                day,
                times.start_time,
                times.end_time,
                exclude_shift_id=shift.id if day == origin else None,
                tz=self.tz,
            )
            if clashing:
                raise ShiftConflictError(day, [s.id for s in clashing])

        attempts = []
        for day in days:
            payload = self._create_payload(shift.employee_id, day, times)
            if day == origin:
                update = ShiftUpdate(
                    start_at=payload.start_at,
                    end_at=payload.end_at,
                    title=payload.title,
                    location=payload.location,
                    notes=payload.notes,
                    color=payload.color,
                )
                attempts.append(("update", day, self.update_shift(shift.id, update)))
            else:
                attempts.append(("create", day, self.create_shift(payload)))

        result = BatchResult(await self._settle(attempts))
        self.invalidate()
        logger.info("expanded shift %s: %s", shift.id, result.summary())
        return result
