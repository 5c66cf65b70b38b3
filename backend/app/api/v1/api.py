from fastapi import APIRouter

from app.api.v1.endpoints import notification_preferences, notifications, schedule_history, schedules

api_router = APIRouter()
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
api_router.include_router(schedule_history.router, prefix="/schedule-history", tags=["schedule-history"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(notification_preferences.router, prefix="/notification-preferences", tags=["notification-preferences"])
