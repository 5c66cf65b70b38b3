"""Schedule model for recurring update generation."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Text, Index
from sqlalchemy.sql import func
from app.database import Base, JSONType


class Schedule(Base):
    """User-defined rule for auto-generating a daily or weekly update."""

    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(100), nullable=False, index=True)
    name = Column(String(200), nullable=True)

    # What to generate
    update_type = Column(String(20), nullable=False)  # 'daily' | 'weekly'
    company_id = Column(String(100), nullable=True)
    tag_ids = Column(JSONType, nullable=False, default=list)
    content_template = Column(Text, nullable=False)

    # When to generate it
    frequency = Column(String(20), nullable=False, default='once')  # 'once' | 'daily' | 'weekly' | 'monthly'
    time_of_day = Column(String(5), nullable=False)  # HH:MM in `timezone`
    timezone = Column(String(50), nullable=False, default='UTC')
    day_of_week = Column(Integer, nullable=True)  # 0-6, Sunday=0
    day_of_month = Column(Integer, nullable=True)  # 1-31, clamped per month
    once_date = Column(Date, nullable=True)

    # Delivery
    send_email = Column(Boolean, nullable=False, default=False)
    recipients = Column(JSONType, nullable=False, default=list)

    # Run state (owned by the scheduler once created)
    is_active = Column(Boolean, nullable=False, default=True)
    next_run = Column(DateTime(timezone=True), nullable=True)
    last_run_at = Column(DateTime(timezone=True), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_schedules_due', 'is_active', 'next_run'),
        Index('idx_schedules_owner_active', 'owner_id', 'is_active', 'next_run'),
    )

    @property
    def display_name(self) -> str:
        return self.name or f"{self.update_type} update"

    def __repr__(self):
        return f"<Schedule(id={self.id}, frequency='{self.frequency}', next_run={self.next_run}, active={self.is_active})>"
