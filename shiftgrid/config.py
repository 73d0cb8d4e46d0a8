import logging
import os
from collections.abc import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from shiftgrid.lanes import LanePolicy

ENV_PREFIX = "SHIFTGRID_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    timezone: str = "UTC"
    log_level: str = "INFO"
    timeline_start_hour: int = Field(default=6, ge=0, le=23)
    timeline_end_hour: int = Field(default=22, ge=1, le=24)
    lane_policy: LanePolicy = LanePolicy.GREEDY
    # when False, work-shift routes skip the subscription check
    enforce_features: bool = True

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError:
            raise ValueError(f"unknown timezone: {value}") from None
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _ordered_timeline(self) -> "Settings":
        if self.timeline_end_hour <= self.timeline_start_hour:
            raise ValueError("timeline_end_hour must be after timeline_start_hour")
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {
            name: environ[f"{ENV_PREFIX}{name.upper()}"]
            for name in cls.model_fields
            if f"{ENV_PREFIX}{name.upper()}" in environ
        }
        return cls.model_validate(values)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
