"""In-app notification store: creation, listing, read state and quiet-hours release."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.constants.execution import NotificationCategory, NotificationType
from app.models.notification import Notification
from app.utils.time_window import as_utc, utc_now

log = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: str,
    title: str,
    message: str,
    type: str = NotificationType.INFO.value,
    category: str = NotificationCategory.OTHER.value,
    link: Optional[str] = None,
    surfaced: bool = True,
    extra: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Notification:
    """Store a notification. ``surfaced=False`` holds it back until quiet hours end."""
    notification = Notification(
        user_id=user_id,
        title=title[:100],
        message=message[:500],
        type=type,
        category=category,
        link=link,
        extra=extra,
        surfaced=surfaced,
        surfaced_at=as_utc(now or utc_now()) if surfaced else None,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def list_notifications(
    db: Session,
    user_id: str,
    is_read: Optional[bool] = None,
    include_held: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[Notification], int]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if is_read is not None:
        query = query.filter(Notification.is_read == is_read)
    if not include_held:
        query = query.filter(Notification.surfaced == True)  # noqa: E712
    total = query.count()
    items = query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(skip).limit(limit).all()
    return items, total


def unread_count(db: Session, user_id: str) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False,  # noqa: E712
        Notification.surfaced == True,  # noqa: E712
    ).count()


def get_notification(db: Session, user_id: str, notification_id: int) -> Optional[Notification]:
    return db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()


def mark_as_read(db: Session, user_id: str, notification_id: int) -> Optional[Notification]:
    notification = get_notification(db, user_id, notification_id)
    if notification is None:
        return None
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user_id: str) -> int:
    updated = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.surfaced == True,  # noqa: E712
        Notification.is_read == False,  # noqa: E712
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return updated


def delete_notification(db: Session, user_id: str, notification_id: int) -> bool:
    notification = get_notification(db, user_id, notification_id)
    if notification is None:
        return False
    db.delete(notification)
    db.commit()
    return True


def release_held_notifications(db: Session, gate, now: Optional[datetime] = None) -> int:
    """Surface notifications held during quiet hours for users whose window has ended."""
    now = as_utc(now or utc_now())
    user_ids = [
        row[0]
        for row in db.query(Notification.user_id)
        .filter(Notification.surfaced == False)  # noqa: E712
        .distinct()
        .all()
    ]

    # Evaluate the gate for every user before writing anything
    deliverable = [user_id for user_id in user_ids if gate.should_deliver_now(user_id, now)]
    if not deliverable:
        return 0

    released = db.query(Notification).filter(
        Notification.user_id.in_(deliverable),
        Notification.surfaced == False,  # noqa: E712
    ).update({Notification.surfaced: True, Notification.surfaced_at: now}, synchronize_session=False)
    db.commit()

    if released:
        log.info(f"Released {released} notification(s) held during quiet hours")
    return released
