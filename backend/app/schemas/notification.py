"""Notification and notification preference schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.utils.time_window import as_utc, parse_hhmm, validate_timezone


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    category: str
    link: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None
    surfaced_at: Optional[datetime] = None

    @field_validator('created_at', 'surfaced_at')
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v else v

    class Config:
        from_attributes = True


class PaginatedNotifications(BaseModel):
    data: List[NotificationResponse]
    total: int
    unread_count: int


class UnreadCount(BaseModel):
    count: int


class QuietHours(BaseModel):
    enabled: bool
    start_time: str
    end_time: str
    timezone: str


class QuietHoursUpdate(BaseModel):
    enabled: Optional[bool] = None
    start_time: Optional[str] = Field(None, description="HH:MM, 24-hour")
    end_time: Optional[str] = Field(None, description="HH:MM, 24-hour")
    timezone: Optional[str] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_hhmm(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        parse_hhmm(v)
        return v

    @field_validator('timezone')
    @classmethod
    def validate_zone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_timezone(v)


class NotificationPreferencesResponse(BaseModel):
    email_notifications: Dict[str, bool]
    in_app_notifications: Dict[str, bool]
    bot_notifications: Dict[str, bool]
    quiet_hours: QuietHours

    @classmethod
    def from_preferences(cls, preferences) -> "NotificationPreferencesResponse":
        return cls(
            email_notifications=preferences.email_notifications or {},
            in_app_notifications=preferences.in_app_notifications or {},
            bot_notifications=preferences.bot_notifications or {},
            quiet_hours=QuietHours(
                enabled=preferences.quiet_hours_enabled,
                start_time=preferences.quiet_hours_start,
                end_time=preferences.quiet_hours_end,
                timezone=preferences.quiet_hours_timezone,
            ),
        )


class NotificationPreferencesUpdate(BaseModel):
    """Partial update; each group is merged key by key."""

    email_notifications: Optional[Dict[str, bool]] = None
    in_app_notifications: Optional[Dict[str, bool]] = None
    bot_notifications: Optional[Dict[str, bool]] = None
    quiet_hours: Optional[QuietHoursUpdate] = None
