# spentiva/schemas/report_schedule.py
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from spentiva.db.models import ReportFrequency


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {value}")
    return value


class ScheduleCreate(BaseModel):
    trackerId: int
    frequency: ReportFrequency
    dayOfWeek: Optional[int] = Field(None, ge=0, le=6)
    dayOfMonth: Optional[int] = Field(None, ge=1, le=28)
    hour: int = Field(9, ge=0, le=23)
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def valid_timezone(cls, value):
        return _check_timezone(value)


class ScheduleUpdate(BaseModel):
    frequency: Optional[ReportFrequency] = None
    dayOfWeek: Optional[int] = Field(None, ge=0, le=6)
    dayOfMonth: Optional[int] = Field(None, ge=1, le=28)
    hour: Optional[int] = Field(None, ge=0, le=23)
    timezone: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("timezone")
    @classmethod
    def valid_timezone(cls, value):
        return _check_timezone(value)
