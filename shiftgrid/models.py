"""
Domain models and request payloads for the work-shift API.

Attributes are snake_case in Python and camelCase on the wire.
"""

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_COLOR = "#007AFF"
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


AwareDatetime = Annotated[datetime, AfterValidator(ensure_aware)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmployeeStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VacationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class HolidayType(StrEnum):
    NATIONAL = "national"
    REGIONAL = "regional"
    LOCAL = "local"


class Employee(CamelModel):
    id: int
    company_id: int
    full_name: str
    role: str = "employee"
    status: EmployeeStatus = EmployeeStatus.ACTIVE


class Shift(CamelModel):
    id: int
    company_id: int
    employee_id: int
    start_at: AwareDatetime
    end_at: AwareDatetime
    title: str = Field(default="", max_length=100)
    location: str | None = None
    notes: str | None = None
    color: str = DEFAULT_COLOR
    created_by_user_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def duration_minutes(self) -> float:
        return (self.end_at - self.start_at).total_seconds() / 60


class VacationRequest(CamelModel):
    id: int
    user_id: int
    start_date: date
    end_date: date
    reason: str | None = None
    status: VacationStatus = VacationStatus.PENDING

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class HolidayCreate(CamelModel):
    name: str
    start_date: date
    end_date: date
    type: HolidayType = HolidayType.LOCAL
    region: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _ordered_dates(self) -> "HolidayCreate":
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class Holiday(HolidayCreate):
    id: int
    company_id: int

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Subscription(CamelModel):
    plan: str = "basic"
    status: str = "active"
    features: dict[str, bool] = Field(default_factory=dict)
    max_users: int | None = None


class ShiftCreate(CamelModel):
    employee_id: int
    start_at: AwareDatetime
    end_at: AwareDatetime
    title: str = Field(default="", max_length=100)
    location: str | None = None
    notes: str | None = None
    color: str = DEFAULT_COLOR

    @model_validator(mode="after")
    def _ordered_times(self) -> "ShiftCreate":
        if self.end_at <= self.start_at:
            raise ValueError("endAt must be after startAt")
        return self


class ShiftUpdate(CamelModel):
    employee_id: int | None = None
    start_at: AwareDatetime | None = None
    end_at: AwareDatetime | None = None
    title: str | None = Field(default=None, max_length=100)
    location: str | None = None
    notes: str | None = None
    color: str | None = None


class ShiftTimes(CamelModel):
    """Time-of-day form values, applied to one or more target dates."""

    start_time: str = Field(pattern=TIME_OF_DAY_PATTERN)
    end_time: str = Field(pattern=TIME_OF_DAY_PATTERN)
    title: str = Field(default="", max_length=100)
    location: str | None = None
    notes: str | None = None
    color: str = DEFAULT_COLOR

    @model_validator(mode="after")
    def _non_empty(self) -> "ShiftTimes":
        if self.start_time == self.end_time:
            raise ValueError("startTime and endTime must differ")
        return self


class ShiftDuplicate(CamelModel):
    employee_id: int
    date: date


class ShiftOverride(ShiftTimes):
    employee_id: int
    date: date
