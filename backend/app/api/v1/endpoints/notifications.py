"""In-app notification endpoints."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.auth import get_current_active_user
from app.database import get_db
from app.schemas.auth import User
from app.schemas.notification import NotificationResponse, PaginatedNotifications, UnreadCount
from app.services import notification_service

router = APIRouter()


@router.get("/", response_model=PaginatedNotifications)
async def read_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    is_read: Optional[bool] = Query(None, description="Filter by read state"),
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """List surfaced notifications, newest first. Notifications held during quiet hours are not shown."""
    items, total = notification_service.list_notifications(
        db, current_user.username, is_read=is_read, skip=skip, limit=limit
    )
    return PaginatedNotifications(
        data=[NotificationResponse.model_validate(item) for item in items],
        total=total,
        unread_count=notification_service.unread_count(db, current_user.username),
    )


@router.get("/unread-count", response_model=UnreadCount)
async def read_unread_count(
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    return UnreadCount(count=notification_service.unread_count(db, current_user.username))


@router.put("/read-all")
async def mark_all_read(
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_all_as_read(db, current_user.username)
    return {"updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    notification = notification_service.mark_as_read(db, current_user.username, notification_id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    if not notification_service.delete_notification(db, current_user.username, notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
