"""Execution record model for tracking scheduled update executions."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Index
from sqlalchemy.sql import func
from app.database import Base, JSONType


class ExecutionRecord(Base):
    """Append-only history of schedule execution attempts."""

    __tablename__ = "execution_records"

    id = Column(Integer, primary_key=True, index=True)

    # No foreign key: history outlives the schedule it describes
    schedule_id = Column(Integer, nullable=False, index=True)
    owner_id = Column(String(100), nullable=False, index=True)

    # Execution details
    trigger_type = Column(String(50), nullable=False, default='scheduled')  # 'scheduled', 'manual'
    executed_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    execution_time_ms = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False)  # 'running', 'success', 'partial', 'failed'

    # Outcome
    update_type = Column(String(20), nullable=False)
    created_update_id = Column(String(100), nullable=True)
    email_sent = Column(Boolean, nullable=False, default=False)
    email_recipients = Column(JSONType, nullable=False, default=list)

    # Error information
    error_message = Column(Text, nullable=True)

    # Schedule as it looked when it ran (name, frequency, ...)
    schedule_snapshot = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_execution_records_schedule_executed', 'schedule_id', 'executed_at'),
        Index('idx_execution_records_owner_status', 'owner_id', 'status', 'executed_at'),
    )

    def __repr__(self):
        return f"<ExecutionRecord(id={self.id}, schedule={self.schedule_id}, status='{self.status}', ms={self.execution_time_ms})>"
