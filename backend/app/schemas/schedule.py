"""Schedule schemas for API requests and responses."""

from datetime import date, datetime
from typing import ClassVar, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.utils.time_window import as_utc, parse_hhmm, validate_timezone


def _check_time_of_day(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    parse_hhmm(v)
    return v


def _check_recipients(v: Optional[list[str]]) -> Optional[list[str]]:
    if v is None:
        return v
    cleaned = [address.strip() for address in v if address and address.strip()]
    for address in cleaned:
        if "@" not in address:
            raise ValueError(f'Invalid email address: {address}')
    return cleaned


class ScheduleBase(BaseModel):
    """Base schedule schema."""

    name: Optional[str] = Field(None, max_length=200)
    update_type: Literal['daily', 'weekly'] = Field(..., description="Kind of update to generate")
    company_id: Optional[str] = Field(None, max_length=100)
    tag_ids: list[str] = Field(default_factory=list)
    content_template: str = Field(..., min_length=1, description="Content handed to the update generator")

    frequency: Literal['once', 'daily', 'weekly', 'monthly'] = Field(default='once')
    time_of_day: str = Field(..., description="HH:MM, 24-hour, in `timezone`")
    timezone: str = Field(default='UTC', description="IANA timezone for time_of_day")
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="0-6, Sunday=0 (weekly)")
    day_of_month: Optional[int] = Field(None, ge=1, le=31, description="1-31 (monthly)")
    once_date: Optional[date] = Field(None, description="Date of a one-time schedule")

    send_email: bool = Field(default=False)
    recipients: list[str] = Field(default_factory=list)

    @field_validator('time_of_day')
    @classmethod
    def validate_time_of_day(cls, v: str) -> str:
        return _check_time_of_day(v)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return validate_timezone(v)

    @field_validator('recipients')
    @classmethod
    def validate_recipients(cls, v: list[str]) -> list[str]:
        return _check_recipients(v)


class ScheduleCreate(ScheduleBase):
    is_active: bool = Field(default=True)


class ScheduleUpdate(BaseModel):
    """Schedule update schema - all fields optional."""

    # Columns that may be omitted from an update but never cleared
    NOT_NULLABLE: ClassVar[frozenset] = frozenset({
        "update_type", "tag_ids", "content_template", "frequency", "time_of_day",
        "timezone", "send_email", "recipients", "is_active",
    })

    name: Optional[str] = Field(None, max_length=200)
    update_type: Optional[Literal['daily', 'weekly']] = None
    company_id: Optional[str] = Field(None, max_length=100)
    tag_ids: Optional[list[str]] = None
    content_template: Optional[str] = Field(None, min_length=1)
    frequency: Optional[Literal['once', 'daily', 'weekly', 'monthly']] = None
    time_of_day: Optional[str] = None
    timezone: Optional[str] = None
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    once_date: Optional[date] = None
    send_email: Optional[bool] = None
    recipients: Optional[list[str]] = None
    is_active: Optional[bool] = None

    @field_validator('time_of_day')
    @classmethod
    def validate_time_of_day(cls, v: Optional[str]) -> Optional[str]:
        return _check_time_of_day(v)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_timezone(v)

    @field_validator('recipients')
    @classmethod
    def validate_recipients(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_recipients(v)

    @model_validator(mode='after')
    def reject_explicit_nulls(self) -> 'ScheduleUpdate':
        cleared = sorted(
            name for name in self.model_fields_set & self.NOT_NULLABLE if getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self


class ScheduleResponse(ScheduleBase):
    """Schedule response including run state."""

    id: int
    owner_id: str
    is_active: bool
    next_run: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator('next_run', 'last_run_at', 'updated_at', 'created_at')
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v else v

    class Config:
        from_attributes = True
