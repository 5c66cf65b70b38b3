from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import get_current_active_user
from app.database import get_db
from app.schemas.auth import User
from app.schemas.notification import NotificationPreferencesResponse, NotificationPreferencesUpdate
from app.services import preference_service

router = APIRouter()


@router.get("/", response_model=NotificationPreferencesResponse)
async def read_preferences(
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """Get notification preferences, creating the defaults on first access."""
    preferences = preference_service.get_or_create_preferences(db, current_user.username)
    return NotificationPreferencesResponse.from_preferences(preferences)


@router.put("/", response_model=NotificationPreferencesResponse)
async def update_preferences(
    update: NotificationPreferencesUpdate,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """Partially update notification preferences, including quiet hours."""
    preferences = preference_service.update_preferences(
        db, current_user.username, update.model_dump(exclude_unset=True)
    )
    return NotificationPreferencesResponse.from_preferences(preferences)


@router.post("/reset", response_model=NotificationPreferencesResponse)
async def reset_preferences(
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    preferences = preference_service.reset_preferences(db, current_user.username)
    return NotificationPreferencesResponse.from_preferences(preferences)
