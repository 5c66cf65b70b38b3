from enum import Enum
from typing import Dict


class Frequency(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class UpdateType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class TriggerType(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(str, Enum):
    SYSTEM = "system"
    UPDATE = "update"
    REMINDER = "reminder"
    ACHIEVEMENT = "achievement"
    OTHER = "other"


TERMINAL_STATUSES = (ExecutionStatus.SUCCESS, ExecutionStatus.PARTIAL, ExecutionStatus.FAILED)

NOTIFICATION_TYPE_FOR_STATUS: Dict[ExecutionStatus, NotificationType] = {
    ExecutionStatus.SUCCESS: NotificationType.SUCCESS,
    ExecutionStatus.PARTIAL: NotificationType.WARNING,
    ExecutionStatus.FAILED: NotificationType.ERROR,
}


def explain_status(status: ExecutionStatus, context: Dict) -> str:
    templates = {
        ExecutionStatus.SUCCESS: "Your scheduled {update_type} update '{name}' was generated successfully.",
        ExecutionStatus.PARTIAL: "Your scheduled {update_type} update '{name}' was generated, but the email could not be sent: {error}.",
        ExecutionStatus.FAILED: "Your scheduled {update_type} update '{name}' failed: {error}.",
    }
    template = templates.get(status, templates[ExecutionStatus.FAILED])
    return template.format(**{**context, 'error': context.get('error') or 'unknown error'})
