"""Notification preference persistence: lazy defaults, partial updates and reset."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from app.models.notification_preference import NotificationPreference

log = logging.getLogger(__name__)

_GROUPS = ("email_notifications", "in_app_notifications", "bot_notifications")
_QUIET_HOURS_FIELDS = {
    "enabled": "quiet_hours_enabled",
    "start_time": "quiet_hours_start",
    "end_time": "quiet_hours_end",
    "timezone": "quiet_hours_timezone",
}


def get_or_create_preferences(db: Session, user_id: str) -> NotificationPreference:
    """Return the user's preferences, creating the default row on first access."""
    preferences = db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()
    if preferences is None:
        preferences = NotificationPreference(user_id=user_id)
        db.add(preferences)
        db.commit()
        db.refresh(preferences)
        log.info(f"Created default notification preferences for user '{user_id}'")
    return preferences


def update_preferences(db: Session, user_id: str, changes: Dict[str, Any]) -> NotificationPreference:
    """
    Merge ``changes`` into the stored preferences.

    Each group (``email_notifications``, ``in_app_notifications``,
    ``bot_notifications``, ``quiet_hours``) is merged key by key, so a caller
    can flip a single flag without resending the whole group.
    """
    preferences = get_or_create_preferences(db, user_id)

    for group in _GROUPS:
        incoming: Optional[Dict[str, Any]] = changes.get(group)
        if incoming:
            # Reassign so the JSON column is flagged dirty
            setattr(preferences, group, {**(getattr(preferences, group) or {}), **incoming})

    quiet_hours = changes.get("quiet_hours") or {}
    for key, column in _QUIET_HOURS_FIELDS.items():
        if quiet_hours.get(key) is not None:
            setattr(preferences, column, quiet_hours[key])

    db.commit()
    db.refresh(preferences)
    log.info(f"Updated notification preferences for user '{user_id}'")
    return preferences


def reset_preferences(db: Session, user_id: str) -> NotificationPreference:
    """Drop the user's preferences and recreate the defaults."""
    db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).delete(synchronize_session=False)
    db.commit()
    log.info(f"Reset notification preferences for user '{user_id}'")
    return get_or_create_preferences(db, user_id)
