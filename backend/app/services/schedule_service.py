"""Schedule CRUD with cross-field validation and next-run bookkeeping."""

from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from app.constants.execution import Frequency, TriggerType
from app.models.execution_record import ExecutionRecord
from app.models.schedule import Schedule
from app.schemas.schedule import ScheduleCreate, ScheduleUpdate
from app.services.schedule_store import ScheduleStore
from app.utils.time_window import as_utc, compute_next_run, parse_hhmm, utc_now, validate_timezone

log = logging.getLogger(__name__)

# Changing any of these moves the next occurrence
TIMING_FIELDS = (
    'frequency',
    'time_of_day',
    'timezone',
    'day_of_week',
    'day_of_month',
    'once_date',
    'is_active',
)


class ScheduleValidationError(ValueError):
    """A schedule's fields are individually valid but do not describe a runnable schedule."""


def validate_schedule(schedule: Schedule):
    """Check the rules that span several fields. Raises ScheduleValidationError."""
    try:
        frequency = Frequency(schedule.frequency)
        parse_hhmm(schedule.time_of_day)
        validate_timezone(schedule.timezone)
    except ValueError as e:
        raise ScheduleValidationError(str(e)) from e

    if not (schedule.content_template or "").strip():
        raise ScheduleValidationError("Content is required")

    if frequency is Frequency.WEEKLY:
        if schedule.day_of_week is None:
            raise ScheduleValidationError("day_of_week is required for weekly schedules")
        if not 0 <= schedule.day_of_week <= 6:
            raise ScheduleValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    elif frequency is Frequency.MONTHLY:
        if schedule.day_of_month is None:
            raise ScheduleValidationError("day_of_month is required for monthly schedules")
        if not 1 <= schedule.day_of_month <= 31:
            raise ScheduleValidationError("day_of_month must be between 1 and 31")
    elif frequency is Frequency.ONCE and schedule.once_date is None:
        raise ScheduleValidationError("once_date is required for one-time schedules")

    if schedule.send_email and not schedule.recipients:
        raise ScheduleValidationError("At least one recipient is required when send_email is enabled")


def _refresh_next_run(schedule: Schedule, now: datetime):
    if not schedule.is_active:
        schedule.next_run = None
        return

    next_run = compute_next_run(schedule, now)
    if next_run is None:
        # Only a one-time schedule whose instant has passed has no next run
        raise ScheduleValidationError("Scheduled date and time must be in the future")
    schedule.next_run = next_run


def get_schedule(db: Session, owner_id: str, schedule_id: int) -> Optional[Schedule]:
    return db.query(Schedule).filter(
        Schedule.id == schedule_id,
        Schedule.owner_id == owner_id,
    ).first()


def list_schedules(
    db: Session,
    owner_id: str,
    update_type: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[Schedule]:
    """The owner's schedules, soonest next run first; schedules without one come last."""
    query = db.query(Schedule).filter(Schedule.owner_id == owner_id)
    if update_type:
        query = query.filter(Schedule.update_type == update_type)
    if is_active is not None:
        query = query.filter(Schedule.is_active == is_active)
    return query.order_by(Schedule.next_run.is_(None), Schedule.next_run.asc(), Schedule.id.asc()).all()


def create_schedule(db: Session, owner_id: str, data: ScheduleCreate, now: Optional[datetime] = None) -> Schedule:
    now = as_utc(now or utc_now())
    schedule = Schedule(owner_id=owner_id, **data.model_dump())
    validate_schedule(schedule)
    _refresh_next_run(schedule, now)

    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    log.info(f"Created {schedule.frequency} schedule {schedule.id} for '{owner_id}', next run {schedule.next_run}")
    return schedule


def update_schedule(
    db: Session,
    owner_id: str,
    schedule_id: int,
    data: ScheduleUpdate,
    now: Optional[datetime] = None,
) -> Optional[Schedule]:
    schedule = get_schedule(db, owner_id, schedule_id)
    if schedule is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(schedule, field, value)

    try:
        validate_schedule(schedule)
        if any(field in changes for field in TIMING_FIELDS):
            _refresh_next_run(schedule, as_utc(now or utc_now()))
    except ScheduleValidationError:
        db.rollback()
        raise

    db.commit()
    db.refresh(schedule)
    log.info(f"Updated schedule {schedule.id} for '{owner_id}': fields={sorted(changes)}, next run {schedule.next_run}")
    return schedule


def toggle_schedule(db: Session, owner_id: str, schedule_id: int, now: Optional[datetime] = None) -> Optional[Schedule]:
    """Flip ``is_active``. Deactivation clears the next run; activation recomputes it."""
    schedule = get_schedule(db, owner_id, schedule_id)
    if schedule is None:
        return None

    schedule.is_active = not schedule.is_active
    try:
        _refresh_next_run(schedule, as_utc(now or utc_now()))
    except ScheduleValidationError:
        db.rollback()
        raise ScheduleValidationError("This one-time schedule has already run and cannot be activated again")

    db.commit()
    db.refresh(schedule)
    log.info(f"Schedule {schedule.id} {'activated' if schedule.is_active else 'deactivated'} by '{owner_id}'")
    return schedule


def delete_schedule(db: Session, owner_id: str, schedule_id: int) -> bool:
    schedule = get_schedule(db, owner_id, schedule_id)
    if schedule is None:
        return False
    db.delete(schedule)
    db.commit()
    log.info(f"Deleted schedule {schedule_id} for '{owner_id}'")
    return True


async def run_schedule_now(
    db: Session,
    owner_id: str,
    schedule_id: int,
    runner,
    now: Optional[datetime] = None,
) -> Optional[ExecutionRecord]:
    """
    Execute a schedule immediately, outside the periodic scan.

    The schedule moves on exactly as if the scheduler had fired it: a
    one-time schedule is exhausted, a recurring one gets its next occurrence.
    """
    schedule = get_schedule(db, owner_id, schedule_id)
    if schedule is None:
        return None

    claimed = ScheduleStore(db).mark_fired(schedule, as_utc(now or utc_now()))
    log.info(f"Manual run of schedule {schedule_id} requested by '{owner_id}'")
    return await runner.run(claimed, trigger_type=TriggerType.MANUAL.value)
