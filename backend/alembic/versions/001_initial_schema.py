"""Initial schema: schedules, execution records, notifications, preferences

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql import func

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # Create schedules table
    op.create_table('schedules',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('owner_id', sa.String(100), nullable=False),
    sa.Column('name', sa.String(200), nullable=True),
    sa.Column('update_type', sa.String(20), nullable=False),
    sa.Column('company_id', sa.String(100), nullable=True),
    sa.Column('tag_ids', JSONType, nullable=False),
    sa.Column('content_template', sa.Text(), nullable=False),
    sa.Column('frequency', sa.String(20), nullable=False, server_default='once'),
    sa.Column('time_of_day', sa.String(5), nullable=False),
    sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
    sa.Column('day_of_week', sa.Integer(), nullable=True),
    sa.Column('day_of_month', sa.Integer(), nullable=True),
    sa.Column('once_date', sa.Date(), nullable=True),
    sa.Column('send_email', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('recipients', JSONType, nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('next_run', sa.DateTime(timezone=True), nullable=True),
    sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=func.now()),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_schedules_id'), 'schedules', ['id'], unique=False)
    op.create_index(op.f('ix_schedules_owner_id'), 'schedules', ['owner_id'], unique=False)
    op.create_index('idx_schedules_due', 'schedules', ['is_active', 'next_run'], unique=False)
    op.create_index('idx_schedules_owner_active', 'schedules', ['owner_id', 'is_active', 'next_run'], unique=False)

    # Create execution_records table (no FK: history outlives its schedule)
    op.create_table('execution_records',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('schedule_id', sa.Integer(), nullable=False),
    sa.Column('owner_id', sa.String(100), nullable=False),
    sa.Column('trigger_type', sa.String(50), nullable=False, server_default='scheduled'),
    sa.Column('executed_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('execution_time_ms', sa.Integer(), nullable=True),
    sa.Column('status', sa.String(20), nullable=False),
    sa.Column('update_type', sa.String(20), nullable=False),
    sa.Column('created_update_id', sa.String(100), nullable=True),
    sa.Column('email_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('email_recipients', JSONType, nullable=False),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('schedule_snapshot', JSONType, nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_execution_records_id'), 'execution_records', ['id'], unique=False)
    op.create_index(op.f('ix_execution_records_schedule_id'), 'execution_records', ['schedule_id'], unique=False)
    op.create_index(op.f('ix_execution_records_owner_id'), 'execution_records', ['owner_id'], unique=False)
    op.create_index('idx_execution_records_schedule_executed', 'execution_records', ['schedule_id', 'executed_at'], unique=False)
    op.create_index('idx_execution_records_owner_status', 'execution_records', ['owner_id', 'status', 'executed_at'], unique=False)

    # Create notifications table
    op.create_table('notifications',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.String(100), nullable=False),
    sa.Column('title', sa.String(100), nullable=False),
    sa.Column('message', sa.String(500), nullable=False),
    sa.Column('type', sa.String(20), nullable=False, server_default='info'),
    sa.Column('category', sa.String(20), nullable=False, server_default='other'),
    sa.Column('link', sa.String(500), nullable=True),
    sa.Column('extra', JSONType, nullable=True),
    sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('surfaced', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('surfaced_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index('idx_notifications_user_read', 'notifications', ['user_id', 'is_read', 'created_at'], unique=False)
    op.create_index('idx_notifications_held', 'notifications', ['surfaced', 'user_id'], unique=False)

    # Create notification_preferences table
    op.create_table('notification_preferences',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.String(100), nullable=False),
    sa.Column('email_notifications', JSONType, nullable=False),
    sa.Column('in_app_notifications', JSONType, nullable=False),
    sa.Column('bot_notifications', JSONType, nullable=False),
    sa.Column('quiet_hours_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('quiet_hours_start', sa.String(5), nullable=False, server_default='22:00'),
    sa.Column('quiet_hours_end', sa.String(5), nullable=False, server_default='08:00'),
    sa.Column('quiet_hours_timezone', sa.String(50), nullable=False, server_default='UTC'),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=func.now()),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notification_preferences_id'), 'notification_preferences', ['id'], unique=False)
    op.create_index(op.f('ix_notification_preferences_user_id'), 'notification_preferences', ['user_id'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_notification_preferences_user_id'), table_name='notification_preferences')
    op.drop_index(op.f('ix_notification_preferences_id'), table_name='notification_preferences')
    op.drop_table('notification_preferences')

    op.drop_index('idx_notifications_held', table_name='notifications')
    op.drop_index('idx_notifications_user_read', table_name='notifications')
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_index(op.f('ix_notifications_id'), table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('idx_execution_records_owner_status', table_name='execution_records')
    op.drop_index('idx_execution_records_schedule_executed', table_name='execution_records')
    op.drop_index(op.f('ix_execution_records_owner_id'), table_name='execution_records')
    op.drop_index(op.f('ix_execution_records_schedule_id'), table_name='execution_records')
    op.drop_index(op.f('ix_execution_records_id'), table_name='execution_records')
    op.drop_table('execution_records')

    op.drop_index('idx_schedules_owner_active', table_name='schedules')
    op.drop_index('idx_schedules_due', table_name='schedules')
    op.drop_index(op.f('ix_schedules_owner_id'), table_name='schedules')
    op.drop_index(op.f('ix_schedules_id'), table_name='schedules')
    op.drop_table('schedules')
