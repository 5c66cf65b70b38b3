"""APScheduler integration for the periodic schedule scan."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from time import perf_counter
from typing import Callable, Dict, List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.constants.execution import TriggerType
from app.services.execution_runner import ExecutionRunner, StoreUnavailableError
from app.services.history_service import cleanup_old_history
from app.services.notification_gate import NotificationGate
from app.services.notification_service import release_held_notifications
from app.services.schedule_store import ClaimedSchedule, ScheduleStore
from app.utils.time_window import as_utc, utc_now

log = logging.getLogger(__name__)

TICK_JOB_ID = "schedule_tick_job"
RETENTION_JOB_ID = "history_retention_job"


@dataclass
class TickResult:
    due: int = 0
    claimed: int = 0
    executed: int = 0
    statuses: Dict[int, str] = field(default_factory=dict)
    released_notifications: int = 0


class SchedulerService:
    """
    Periodic driver: scans for due schedules, claims each occurrence and
    dispatches the claimed ones to the execution runner.

    One instance per deployment. Overlapping ticks are prevented by the job
    options (``max_instances=1``, ``coalesce=True``): a tick still running
    when the next one is due causes that next one to be skipped. Claiming is
    atomic, so a second deployment scanning the same store cannot run an
    occurrence twice either.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        runner: ExecutionRunner,
        notification_gate: NotificationGate,
        clock: Callable[[], datetime] = utc_now,
        max_workers: int = 5,
        interval_seconds: int = 60,
        history_retention_days: int = 90,
    ):
        self.session_factory = session_factory
        self.runner = runner
        self.notification_gate = notification_gate
        self.clock = clock
        self.max_workers = max_workers
        self.interval_seconds = interval_seconds
        self.history_retention_days = history_retention_days
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self, run_immediately: bool = True):
        """Register the scan and retention jobs and start the scheduler."""
        if self.scheduler.running:
            log.debug("Scheduler already running")
            return

        tick_options = {}
        if run_immediately:
            # Catch up on anything that came due while the service was down
            tick_options["next_run_time"] = as_utc(self.clock())

        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=TICK_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **tick_options,
        )
        self.scheduler.add_job(
            self.cleanup_history,
            trigger=IntervalTrigger(days=1),
            id=RETENTION_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        log.info(
            f"Scheduler started: scanning every {self.interval_seconds}s with up to {self.max_workers} concurrent executions"
        )

    def shutdown(self):
        """Stop the scheduler, waiting for running jobs to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            log.info("Scheduler shut down successfully")

    async def tick(self) -> TickResult:
        """Run one scan cycle."""
        now = as_utc(self.clock())
        started = perf_counter()
        result = TickResult()

        claimed = self._claim_due(now, result)

        if claimed:
            log.info(f"Dispatching {len(claimed)} of {result.due} due schedule(s)")
            await self._dispatch(claimed, result)

        try:
            with self.session_factory() as db:
                result.released_notifications = release_held_notifications(db, self.notification_gate, now)
        except SQLAlchemyError as e:
            log.critical(f"Cannot release held notifications: {e}", exc_info=True)
            raise

        elapsed = perf_counter() - started
        if result.due:
            log.info(
                f"Tick finished in {elapsed:.2f}s: due={result.due}, claimed={result.claimed}, executed={result.executed}"
            )
        else:
            log.debug(f"Tick finished in {elapsed:.2f}s: nothing due")
        return result

    def _claim_due(self, now: datetime, result: TickResult) -> List[ClaimedSchedule]:
        try:
            with self.session_factory() as db:
                store = ScheduleStore(db)
                due = store.list_due(now)
                result.due = len(due)
                claimed = []
                for schedule in due:
                    occurrence = store.claim(schedule, now)
                    if occurrence is not None:
                        claimed.append(occurrence)
        except SQLAlchemyError as e:
            log.critical(f"Schedule store unavailable during scan: {e}", exc_info=True)
            raise

        result.claimed = len(claimed)
        return claimed

    async def _dispatch(self, claimed: List[ClaimedSchedule], result: TickResult):
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _run(occurrence: ClaimedSchedule):
            async with semaphore:
                return await self.runner.run(occurrence, trigger_type=TriggerType.SCHEDULED.value)

        outcomes = await asyncio.gather(*(_run(occurrence) for occurrence in claimed), return_exceptions=True)

        store_failure = None
        for occurrence, outcome in zip(claimed, outcomes):
            if isinstance(outcome, BaseException):
                log.error(f"Execution of schedule {occurrence.id} raised: {outcome}", exc_info=outcome)
                if isinstance(outcome, StoreUnavailableError) and store_failure is None:
                    store_failure = outcome
                continue
            result.executed += 1
            result.statuses[occurrence.id] = outcome.status

        if store_failure is not None:
            log.critical("Execution history store failed during tick")
            raise store_failure

    def cleanup_history(self) -> int:
        """Apply the execution history retention policy."""
        with self.session_factory() as db:
            return cleanup_old_history(db, days_to_keep=self.history_retention_days, now=self.clock())
