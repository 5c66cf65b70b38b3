"""Schedule run-state store: due-schedule scan, state transition and the atomic claim."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import ObjectDeletedError

from app.constants.execution import Frequency
from app.models.schedule import Schedule
from app.utils.time_window import as_utc, compute_next_run

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleTransition:
    """Run state a schedule moves to once one of its occurrences fires."""

    next_run: Optional[datetime]
    is_active: bool
    last_run_at: datetime


def advance(schedule: Any, now: datetime) -> ScheduleTransition:
    """
    Compute the run state after ``schedule`` fires at ``now``.

    Used by the scheduler claim and by manual "run now" so both apply the
    same transition. One-time schedules are exhausted by firing; recurring
    ones move to their next occurrence after ``now``.
    """
    fired_at = as_utc(now)
    if not schedule.is_active or Frequency(schedule.frequency) is Frequency.ONCE:
        return ScheduleTransition(next_run=None, is_active=False, last_run_at=fired_at)

    next_run = compute_next_run(schedule, fired_at)
    return ScheduleTransition(next_run=next_run, is_active=next_run is not None, last_run_at=fired_at)


@dataclass(frozen=True)
class ClaimedSchedule:
    """Detached copy of a schedule taken at claim time, handed to the execution runner."""

    id: int
    owner_id: str
    name: str
    update_type: str
    content_template: str
    frequency: str
    time_of_day: str
    timezone: str
    occurrence: datetime
    company_id: Optional[str] = None
    tag_ids: List[str] = field(default_factory=list)
    send_email: bool = False
    recipients: List[str] = field(default_factory=list)
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    once_date: Optional[date] = None
    next_run: Optional[datetime] = None

    @classmethod
    def from_schedule(
        cls,
        schedule: Schedule,
        occurrence: datetime,
        transition: Optional[ScheduleTransition] = None,
    ) -> "ClaimedSchedule":
        return cls(
            id=schedule.id,
            owner_id=schedule.owner_id,
            name=schedule.display_name,
            update_type=schedule.update_type,
            content_template=schedule.content_template,
            frequency=schedule.frequency,
            time_of_day=schedule.time_of_day,
            timezone=schedule.timezone,
            occurrence=as_utc(occurrence),
            company_id=schedule.company_id,
            tag_ids=list(schedule.tag_ids or []),
            send_email=bool(schedule.send_email),
            recipients=list(schedule.recipients or []),
            day_of_week=schedule.day_of_week,
            day_of_month=schedule.day_of_month,
            once_date=schedule.once_date,
            next_run=transition.next_run if transition else None,
        )

    def snapshot(self) -> Dict[str, Any]:
        """Self-describing summary stored on the execution record."""
        return {
            "name": self.name,
            "frequency": self.frequency,
            "time_of_day": self.time_of_day,
            "timezone": self.timezone,
            "company_id": self.company_id,
            "tags_count": len(self.tag_ids),
            "content_length": len(self.content_template or ""),
            "occurrence": self.occurrence.isoformat(),
        }


class ScheduleStore:
    """Read due schedules and claim their occurrences."""

    def __init__(self, db: Session):
        self.db = db

    def list_due(self, now: datetime) -> List[Schedule]:
        """Active schedules whose next run has arrived, oldest first."""
        return (
            self.db.query(Schedule)
            .filter(
                Schedule.is_active == True,  # noqa: E712
                Schedule.next_run.isnot(None),
                Schedule.next_run <= as_utc(now),
            )
            .order_by(Schedule.next_run.asc())
            .all()
        )

    def claim(self, schedule: Schedule, now: datetime) -> Optional[ClaimedSchedule]:
        """
        Atomically take the occurrence ``schedule.next_run`` for execution.

        The write is a single conditional UPDATE keyed on the next_run value
        that was read, so of any number of concurrent claimants (ticks or
        processes) exactly one sees ``rowcount == 1``. Losers get None.
        """
        try:
            observed = schedule.next_run
            is_active = schedule.is_active
        except ObjectDeletedError:
            log.debug("Due schedule was deleted before it could be claimed")
            return None

        # A refreshed row may already point at a later occurrence claimed elsewhere
        if observed is None or not is_active or as_utc(observed) > as_utc(now):
            return None

        transition = advance(schedule, now)
        claimed = ClaimedSchedule.from_schedule(schedule, occurrence=observed, transition=transition)

        result = self.db.execute(
            update(Schedule)
            .where(
                Schedule.id == schedule.id,
                Schedule.is_active == True,  # noqa: E712
                Schedule.next_run == observed,
            )
            .values(
                next_run=transition.next_run,
                last_run_at=transition.last_run_at,
                is_active=transition.is_active,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        if result.rowcount != 1:
            log.debug(f"Schedule {schedule.id}: occurrence {observed} already claimed elsewhere, skipping")
            return None

        log.debug(
            f"Claimed schedule {schedule.id} occurrence {observed}; next_run={transition.next_run}, active={transition.is_active}"
        )
        return claimed

    def mark_fired(self, schedule: Schedule, now: datetime) -> ClaimedSchedule:
        """Apply ``advance`` unconditionally for a manual run and return the claimed copy."""
        transition = advance(schedule, now)
        claimed = ClaimedSchedule.from_schedule(schedule, occurrence=now, transition=transition)

        schedule.next_run = transition.next_run
        schedule.is_active = transition.is_active
        schedule.last_run_at = transition.last_run_at
        self.db.commit()
        return claimed
