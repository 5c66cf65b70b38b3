from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.utils.time_window import as_utc


class ExecutionError(BaseModel):
    message: str


class ExecutionRecordResponse(BaseModel):
    id: int
    schedule_id: int
    owner_id: str
    trigger_type: str
    executed_at: datetime
    finished_at: Optional[datetime] = None
    execution_time_ms: Optional[int] = None
    status: str  # 'running', 'success', 'partial', 'failed'
    update_type: str
    created_update_id: Optional[str] = None
    email_sent: bool = False
    email_recipients: List[str] = []
    error: Optional[ExecutionError] = None
    schedule_snapshot: Optional[Dict[str, Any]] = None

    @classmethod
    def from_record(cls, record) -> "ExecutionRecordResponse":
        return cls(
            id=record.id,
            schedule_id=record.schedule_id,
            owner_id=record.owner_id,
            trigger_type=record.trigger_type,
            executed_at=as_utc(record.executed_at),
            finished_at=as_utc(record.finished_at) if record.finished_at else None,
            execution_time_ms=record.execution_time_ms,
            status=record.status,
            update_type=record.update_type,
            created_update_id=record.created_update_id,
            email_sent=record.email_sent,
            email_recipients=record.email_recipients or [],
            error=ExecutionError(message=record.error_message) if record.error_message else None,
            schedule_snapshot=record.schedule_snapshot,
        )


class PaginatedExecutionRecords(BaseModel):
    data: List[ExecutionRecordResponse]
    total: int
    skip: int
    limit: int


class StatusStatistics(BaseModel):
    count: int
    avg_execution_time_ms: int


class ScheduleStatistics(BaseModel):
    schedule_id: int
    total_executions: int
    by_status: Dict[str, StatusStatistics]


class ScheduleHistoryResponse(BaseModel):
    """Recent executions of one schedule together with its statistics."""

    data: List[ExecutionRecordResponse]
    total: int
    statistics: ScheduleStatistics


class DailyExecutionStats(BaseModel):
    date: str  # YYYY-MM-DD (UTC)
    total: int = 0
    running: int = 0
    success: int = 0
    partial: int = 0
    failed: int = 0


class ExecutionStatistics(BaseModel):
    period_days: int
    total_executions: int
    failed_executions: int
    success_rate: float
    average_execution_time_ms: int
    by_status: Dict[str, int]
    daily: List[DailyExecutionStats]
