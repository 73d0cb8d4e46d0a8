import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request

from shiftgrid.board import Board, ScheduleBoard, ViewMode, week_start_of
from shiftgrid.config import Settings, configure_logging
from shiftgrid.database import InMemoryKeyValueDatabase
from shiftgrid.errors import (
    FeatureUnavailableError,
    NotFoundError,
    ShiftConflictError,
)
from shiftgrid.features import FeatureGate, restriction_message
from shiftgrid.intervals import (
    build_window,
    find_overlapping_shifts,
    find_window_conflicts,
    local_date,
    move_to_date,
)
from shiftgrid.layout import Timeline
from shiftgrid.models import (
    Employee,
    EmployeeStatus,
    Holiday,
    HolidayCreate,
    Shift,
    ShiftCreate,
    ShiftDuplicate,
    ShiftOverride,
    ShiftUpdate,
    Subscription,
    VacationRequest,
    VacationStatus,
)
from shiftgrid.overrides import plan_override

logger = logging.getLogger(__name__)

router = APIRouter()

NowFn = Callable[[], datetime]
Record = Shift | Employee | VacationRequest | Holiday | Subscription
Database = InMemoryKeyValueDatabase[str, Record]

CompanyId = Annotated[int, Header(alias="X-Company-Id")]
UserId = Annotated[int | None, Header(alias="X-User-Id")]

NULLABLE_SHIFT_FIELDS = ("location", "notes")

ROLE_HEADER = "X-User-Role"
# comma-separated feature keys a manager may see; absent means no restriction
VISIBLE_FEATURES_HEADER = "X-Visible-Features"


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except FeatureUnavailableError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except ShiftConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _db(request: Request) -> Database:
    return request.app.state.database


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _require_schedules(request: Request, company_id: int) -> None:
    if not _settings(request).enforce_features:
        return
    subscription = _db(request).get(f"subscription:{company_id}")
    visible = request.headers.get(VISIBLE_FEATURES_HEADER)
    gate = FeatureGate(
        subscription if isinstance(subscription, Subscription) else None,
        role=request.headers.get(ROLE_HEADER, "admin"),
        visible_features=(
            None if visible is None else [f.strip() for f in visible.split(",") if f.strip()]
        ),
    )
    if not gate.has_access("schedules"):
        raise FeatureUnavailableError("schedules", restriction_message("schedules"))


def _new_id(db: Database, namespace: str) -> int:
    ident = db.next_id(namespace)
    while db.get(f"{namespace}:{ident}") is not None:
        ident = db.next_id(namespace)
    return ident


def _company_shifts(db: Database, company_id: int) -> list[Shift]:
    return [s for s in db.of_type(Shift) if s.company_id == company_id]


def _get_shift(db: Database, company_id: int, shift_id: int) -> Shift:
    shift = db.get(f"shift:{shift_id}")
    if not isinstance(shift, Shift) or shift.company_id != company_id:
        raise NotFoundError("shift", shift_id)
    return shift


def _get_employee(db: Database, company_id: int, employee_id: int) -> Employee:
    employee = db.get(f"employee:{employee_id}")
    if (
        not isinstance(employee, Employee)
        or employee.company_id != company_id
        or employee.status != EmployeeStatus.ACTIVE
    ):
        raise NotFoundError("employee", employee_id)
    return employee


def _ensure_free(
    request: Request,
    company_id: int,
    employee_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_shift_id: int | None = None,
) -> None:
    tz = _settings(request).tz
    conflicts = find_window_conflicts(
        _company_shifts(_db(request), company_id),
        employee_id,
        start_at,
        end_at,
        exclude_shift_id=exclude_shift_id,
        tz=tz,
    )
    if conflicts:
        target = local_date(start_at, tz)
        logger.warning(
            "conflict for employee %s on %s with shifts %s",
            employee_id,
            target,
            [s.id for s in conflicts],
        )
        raise ShiftConflictError(target, [s.id for s in conflicts])


def _insert_shift(
    request: Request,
    company_id: int,
    payload: ShiftCreate,
    user_id: int | None,
) -> Shift:
    # check and write without awaiting in between so concurrent creates
    # cannot both pass the conflict check
    db = _db(request)
    _get_employee(db, company_id, payload.employee_id)
    _ensure_free(
        request, company_id, payload.employee_id, payload.start_at, payload.end_at
    )
    now = request.app.state.now_fn()
    shift = Shift(
        id=_new_id(db, "shift"),
        company_id=company_id,
        created_by_user_id=user_id,
        created_at=now,
        updated_at=now,
        **payload.model_dump(),
    )
    db.put(f"shift:{shift.id}", shift)
    logger.info(
        "created shift %s for employee %s (%s - %s)",
        shift.id,
        shift.employee_id,
        shift.start_at.isoformat(),
        shift.end_at.isoformat(),
    )
    return shift


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/work-shifts/company", response_model=list[Shift])
async def list_company_shifts(
    request: Request,
    company_id: CompanyId,
    start: date | None = None,
    end: date | None = None,
) -> list[Shift]:
    with _http_errors():
        _require_schedules(request, company_id)
    tz = _settings(request).tz
    shifts = [
        s
        for s in _company_shifts(_db(request), company_id)
        if (start is None or local_date(s.start_at, tz) >= start)
        and (end is None or local_date(s.start_at, tz) <= end)
    ]
    return sorted(shifts, key=lambda s: (s.start_at, s.id))


@router.post("/api/work-shifts", response_model=Shift, status_code=201)
async def create_shift(
    payload: ShiftCreate,
    request: Request,
    company_id: CompanyId,
    user_id: UserId = None,
) -> Shift:
    with _http_errors():
        _require_schedules(request, company_id)
        return _insert_shift(request, company_id, payload, user_id)


@router.patch("/api/work-shifts/{shift_id}", response_model=Shift)
async def update_shift(
    shift_id: int,
    payload: ShiftUpdate,
    request: Request,
    company_id: CompanyId,
) -> Shift:
    db = _db(request)
    with _http_errors():
        _require_schedules(request, company_id)
        shift = _get_shift(db, company_id, shift_id)
        changes = {
            k: v
            for k, v in payload.model_dump(exclude_unset=True).items()
            if v is not None or k in NULLABLE_SHIFT_FIELDS
        }
        updated = shift.model_copy(update=changes)
        if updated.end_at <= updated.start_at:
            raise HTTPException(
                status_code=422, detail="endAt must be after startAt"
            )
        if updated.employee_id != shift.employee_id:
            _get_employee(db, company_id, updated.employee_id)
        _ensure_free(
            request,
            company_id,
            updated.employee_id,
            updated.start_at,
            updated.end_at,
            exclude_shift_id=shift.id,
        )
        updated.updated_at = request.app.state.now_fn()
        db.put(f"shift:{shift.id}", updated)

    logger.info("updated shift %s (%s)", shift.id, ", ".join(sorted(changes)))
    return updated


@router.delete("/api/work-shifts/{shift_id}")
async def delete_shift(
    shift_id: int, request: Request, company_id: CompanyId
) -> dict:
    db = _db(request)
    with _http_errors():
        _require_schedules(request, company_id)
        shift = _get_shift(db, company_id, shift_id)
    db.delete(f"shift:{shift.id}")
    logger.info("deleted shift %s", shift.id)
    return {"success": True, "id": shift.id}


@router.post(
    "/api/work-shifts/{shift_id}/duplicate", response_model=Shift, status_code=201
)
async def duplicate_shift(
    shift_id: int,
    payload: ShiftDuplicate,
    request: Request,
    company_id: CompanyId,
    user_id: UserId = None,
) -> Shift:
    db = _db(request)
    tz = _settings(request).tz
    with _http_errors():
        _require_schedules(request, company_id)
        source = _get_shift(db, company_id, shift_id)
        employee = _get_employee(db, company_id, payload.employee_id)

        on_vacation = any(
            v.user_id == employee.id
            and v.status == VacationStatus.APPROVED
            and v.covers(payload.date)
            for v in db.of_type(VacationRequest)
        )
        if on_vacation:
            raise HTTPException(
                status_code=409,
                detail=f"{employee.full_name} is on vacation on {payload.date.isoformat()}",
            )

        start_at, end_at = move_to_date(source, payload.date, tz)
        overlapping = find_overlapping_shifts(
            _company_shifts(db, company_id),
            employee.id,
            start_at,
            end_at,
            payload.date,
            tz,
            exclude_shift_id=source.id,
        )
        if overlapping:
            raise ShiftConflictError(payload.date, [s.id for s in overlapping])

        copy = ShiftCreate(
            employee_id=employee.id,
            start_at=start_at,
            end_at=end_at,
            title=source.title,
            location=source.location,
            notes=source.notes,
            color=source.color,
        )
        return _insert_shift(request, company_id, copy, user_id)


@router.post("/api/work-shifts/override", status_code=201)
async def override_shifts(
    payload: ShiftOverride,
    request: Request,
    company_id: CompanyId,
    user_id: UserId = None,
) -> dict:
    """
    Force a shift into a slot, trimming, splitting or deleting whatever of
    the employee's existing shifts it overlaps.
    """
    db = _db(request)
    tz = _settings(request).tz
    with _http_errors():
        _require_schedules(request, company_id)
        _get_employee(db, company_id, payload.employee_id)

    start_at, end_at = build_window(payload.date, payload.start_time, payload.end_time, tz)
    new_shift = ShiftCreate(
        employee_id=payload.employee_id,
        start_at=start_at,
        end_at=end_at,
        title=payload.title,
        location=payload.location,
        notes=payload.notes,
        color=payload.color,
    )
    shifts = _company_shifts(db, company_id)
    existing = {
        s.id: s
        for s in find_overlapping_shifts(
            shifts, payload.employee_id, start_at, end_at, payload.date, tz
        )
        + find_window_conflicts(shifts, payload.employee_id, start_at, end_at, tz=tz)
    }
    plan = plan_override(new_shift, existing.values(), tz)

    now = request.app.state.now_fn()
    for shift_id in plan.to_delete:
        db.delete(f"shift:{shift_id}")
    for window in plan.to_update:
        shift = _get_shift(db, company_id, window.id)
        db.put(
            f"shift:{shift.id}",
            shift.model_copy(
                update={
                    "start_at": window.start_at,
                    "end_at": window.end_at,
                    "updated_at": now,
                }
            ),
        )

    created = []
    for piece in plan.to_create:
        shift = Shift(
            id=_new_id(db, "shift"),
            company_id=company_id,
            created_by_user_id=user_id,
            created_at=now,
            updated_at=now,
            **piece.model_dump(),
        )
        db.put(f"shift:{shift.id}", shift)
        created.append(shift)

    logger.info(
        "override for employee %s on %s: %d created, %d trimmed, %d deleted",
        payload.employee_id,
        payload.date,
        len(created),
        len(plan.to_update),
        len(plan.to_delete),
    )
    return {
        "created": [s.model_dump(mode="json", by_alias=True) for s in created],
        "updated": [w.id for w in plan.to_update],
        "deleted": plan.to_delete,
    }


@router.get("/api/employees", response_model=list[Employee])
async def list_employees(request: Request, company_id: CompanyId) -> list[Employee]:
    employees = [
        e
        for e in _db(request).of_type(Employee)
        if e.company_id == company_id and e.status == EmployeeStatus.ACTIVE
    ]
    return sorted(employees, key=lambda e: e.full_name)


def _company_vacations(db: Database, company_id: int) -> list[VacationRequest]:
    members = {e.id for e in db.of_type(Employee) if e.company_id == company_id}
    return [v for v in db.of_type(VacationRequest) if v.user_id in members]


def _company_holidays(db: Database, company_id: int) -> list[Holiday]:
    return [h for h in db.of_type(Holiday) if h.company_id == company_id]


@router.get("/api/vacation-requests/company", response_model=list[VacationRequest])
async def list_vacation_requests(
    request: Request, company_id: CompanyId
) -> list[VacationRequest]:
    return sorted(
        _company_vacations(_db(request), company_id), key=lambda v: v.start_date
    )


@router.get("/api/holidays/custom", response_model=list[Holiday])
async def list_holidays(request: Request, company_id: CompanyId) -> list[Holiday]:
    return sorted(
        _company_holidays(_db(request), company_id), key=lambda h: h.start_date
    )


@router.post("/api/holidays/custom", response_model=Holiday, status_code=201)
async def create_holiday(
    payload: HolidayCreate, request: Request, company_id: CompanyId
) -> Holiday:
    db = _db(request)
    holiday = Holiday(
        id=_new_id(db, "holiday"), company_id=company_id, **payload.model_dump()
    )
    db.put(f"holiday:{holiday.id}", holiday)
    return holiday


@router.get("/api/schedule/board", response_model=Board)
async def schedule_board(
    request: Request,
    company_id: CompanyId,
    start: date | None = None,
    end: date | None = None,
    view: ViewMode = ViewMode.WEEK,
) -> Board:
    settings = _settings(request)
    db = _db(request)
    with _http_errors():
        _require_schedules(request, company_id)

    if start is None:
        today = request.app.state.now_fn().astimezone(settings.tz).date()
        start = today if view == ViewMode.DAY else week_start_of(today)
    if end is None:
        end = start if view == ViewMode.DAY else start + timedelta(days=6)
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")

    board = ScheduleBoard(
        _company_shifts(db, company_id),
        [e for e in db.of_type(Employee) if e.company_id == company_id],
        _company_vacations(db, company_id),
        _company_holidays(db, company_id),
        tz=settings.tz,
        policy=settings.lane_policy,
        default_timeline=Timeline(
            settings.timeline_start_hour, settings.timeline_end_hour
        ),
    )
    return board.build(start, end, view)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = FastAPI(title="shiftgrid")
    db: Database = InMemoryKeyValueDatabase()
    app.state.database = db
    app.state.settings = settings

    app.state.now_fn = lambda: datetime.now(UTC)

    app.include_router(router)
    return app
