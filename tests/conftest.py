from datetime import UTC, date, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shiftgrid.api import create_app
from shiftgrid.config import Settings
from shiftgrid.database import InMemoryKeyValueDatabase
from shiftgrid.models import (
    Employee,
    EmployeeStatus,
    Holiday,
    Shift,
    Subscription,
    VacationRequest,
    VacationStatus,
)

COMPANY_ID = 1
OTHER_COMPANY_ID = 2

ALICE = 1
BRUNO = 2
CARLA = 3
DORA = 10


def make_shift(
    shift_id: int,
    employee_id: int,
    start: datetime,
    end: datetime,
    *,
    company_id: int = COMPANY_ID,
    title: str = "",
) -> Shift:
    return Shift(
        id=shift_id,
        company_id=company_id,
        employee_id=employee_id,
        start_at=start,
        end_at=end,
        title=title,
    )


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """June 2024 in UTC; the 10th is a Monday."""
    return datetime(2024, 6, day, hour, minute, tzinfo=UTC)


@pytest.fixture
def app():
    return create_app(Settings(timezone="UTC", log_level="WARNING"))


@pytest.fixture
def db(app) -> InMemoryKeyValueDatabase:
    return app.state.database


@pytest.fixture
def seeded(db):
    records = [
        Employee(id=ALICE, company_id=COMPANY_ID, full_name="Alice Ongwele"),
        Employee(id=BRUNO, company_id=COMPANY_ID, full_name="Bruno Diaz"),
        Employee(
            id=CARLA,
            company_id=COMPANY_ID,
            full_name="Carla Ruiz",
            status=EmployeeStatus.INACTIVE,
        ),
        Employee(id=DORA, company_id=OTHER_COMPANY_ID, full_name="Dora Lind"),
    ]
    for e in records:
        db.put(f"employee:{e.id}", e)

    db.put(
        f"subscription:{COMPANY_ID}",
        Subscription(plan="pro", status="active", features={"schedules": True}),
    )
    db.put(
        "vacation:1",
        VacationRequest(
            id=1,
            user_id=BRUNO,
            start_date=date(2024, 6, 12),
            end_date=date(2024, 6, 14),
            status=VacationStatus.APPROVED,
        ),
    )
    db.put(
        "vacation:2",
        VacationRequest(
            id=2,
            user_id=ALICE,
            start_date=date(2024, 6, 11),
            end_date=date(2024, 6, 11),
            status=VacationStatus.PENDING,
        ),
    )
    db.put(
        "holiday:1",
        Holiday(
            id=1,
            company_id=COMPANY_ID,
            name="Company day",
            start_date=date(2024, 6, 13),
            end_date=date(2024, 6, 13),
        ),
    )
    return db


@pytest_asyncio.fixture
async def http(app):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Company-Id": str(COMPANY_ID), "X-User-Id": "99"},
    ) as async_client:
        yield async_client
