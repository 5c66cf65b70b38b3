"""Executes one claimed schedule occurrence and records its outcome."""

from dataclasses import dataclass
from datetime import datetime
from time import perf_counter
from typing import Callable, Optional
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.connectors.base import EmailSender, UpdateGenerator
from app.constants.execution import (
    ExecutionStatus,
    NotificationCategory,
    NOTIFICATION_TYPE_FOR_STATUS,
    TriggerType,
    explain_status,
)
from app.models.execution_record import ExecutionRecord
from app.services.notification_gate import NotificationGate
from app.services.notification_service import create_notification
from app.services.schedule_store import ClaimedSchedule
from app.utils.time_window import as_utc, utc_now

log = logging.getLogger(__name__)

_NOTIFICATION_TITLES = {
    ExecutionStatus.SUCCESS: "Scheduled update created",
    ExecutionStatus.PARTIAL: "Scheduled update partially completed",
    ExecutionStatus.FAILED: "Scheduled update failed",
}


class StoreUnavailableError(RuntimeError):
    """The execution history could not be read or written at all."""


@dataclass
class ExecutionOutcome:
    status: ExecutionStatus
    update_id: Optional[str] = None
    email_sent: bool = False
    error: Optional[str] = None


class ExecutionRunner:
    """
    Performs the unit of work for one due occurrence.

    Lifecycle of the record: inserted as ``running`` when the attempt starts,
    then written exactly once more with its terminal status. Collaborator
    failures never escape ``run``; they become the record's status and error.
    No database session is held across an ``await``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        update_generator: UpdateGenerator,
        email_sender: EmailSender,
        notification_gate: NotificationGate,
        clock: Callable[[], datetime] = utc_now,
        timeout_seconds: float = 45.0,
    ):
        self.session_factory = session_factory
        self.update_generator = update_generator
        self.email_sender = email_sender
        self.notification_gate = notification_gate
        self.clock = clock
        self.timeout_seconds = timeout_seconds

    async def run(self, claimed: ClaimedSchedule, trigger_type: str = TriggerType.SCHEDULED.value) -> ExecutionRecord:
        executed_at = as_utc(self.clock())
        timer_start = perf_counter()
        record_id = self._start_record(claimed, executed_at, trigger_type)

        log.info(f"Executing schedule {claimed.id} ({claimed.update_type}, {trigger_type}) for '{claimed.owner_id}', record #{record_id}")

        outcome = ExecutionOutcome(status=ExecutionStatus.FAILED, error="Execution interrupted")
        try:
            outcome = await self._execute(claimed)
            self._notify_owner(claimed, outcome)
        except Exception as e:
            log.error(f"Unexpected error executing schedule {claimed.id}: {e}", exc_info=True)
            outcome = ExecutionOutcome(
                status=ExecutionStatus.FAILED if outcome.update_id is None else ExecutionStatus.PARTIAL,
                update_id=outcome.update_id,
                email_sent=outcome.email_sent,
                error=f"Unexpected error: {e}",
            )
        finally:
            duration_ms = int((perf_counter() - timer_start) * 1000)
            record = self._finish_record(record_id, outcome, duration_ms)

        log.info(f"Schedule {claimed.id} record #{record_id} finished: status={record.status}, email_sent={record.email_sent}, {duration_ms} ms")
        return record

    async def _execute(self, claimed: ClaimedSchedule) -> ExecutionOutcome:
        try:
            generated = await asyncio.wait_for(
                self.update_generator.generate_update(
                    owner_id=claimed.owner_id,
                    update_type=claimed.update_type,
                    company_id=claimed.company_id,
                    tag_ids=list(claimed.tag_ids),
                    content=claimed.content_template,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = f"Update generation timed out after {self.timeout_seconds:g}s"
            log.error(f"Schedule {claimed.id}: {error}")
            return ExecutionOutcome(status=ExecutionStatus.FAILED, error=error)
        except Exception as e:
            log.error(f"Schedule {claimed.id}: update generation failed: {e}")
            return ExecutionOutcome(status=ExecutionStatus.FAILED, error=f"Update generation failed: {e}")

        log.debug(f"Schedule {claimed.id}: generated update {generated.update_id}")
        if not claimed.send_email or not claimed.recipients:
            return ExecutionOutcome(status=ExecutionStatus.SUCCESS, update_id=generated.update_id)

        try:
            await asyncio.wait_for(
                self.email_sender.send_update_email(generated.update_id, list(claimed.recipients)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = f"Email delivery timed out after {self.timeout_seconds:g}s"
            log.warning(f"Schedule {claimed.id}: {error}")
            return ExecutionOutcome(status=ExecutionStatus.PARTIAL, update_id=generated.update_id, error=error)
        except Exception as e:
            log.warning(f"Schedule {claimed.id}: email delivery failed: {e}")
            return ExecutionOutcome(
                status=ExecutionStatus.PARTIAL,
                update_id=generated.update_id,
                error=f"Email delivery failed: {e}",
            )

        return ExecutionOutcome(status=ExecutionStatus.SUCCESS, update_id=generated.update_id, email_sent=True)

    def _notify_owner(self, claimed: ClaimedSchedule, outcome: ExecutionOutcome) -> None:
        """Tell the owner how the run went; held back (not dropped) during quiet hours."""
        try:
            now = self.clock()
            surfaced = self.notification_gate.should_deliver_now(claimed.owner_id, now)
            context = {"update_type": claimed.update_type, "name": claimed.name, "error": outcome.error}
            with self.session_factory() as db:
                create_notification(
                    db,
                    user_id=claimed.owner_id,
                    title=_NOTIFICATION_TITLES[outcome.status],
                    message=explain_status(outcome.status, context),
                    type=NOTIFICATION_TYPE_FOR_STATUS[outcome.status].value,
                    category=NotificationCategory.UPDATE.value,
                    link=f"/schedules/{claimed.id}/history",
                    surfaced=surfaced,
                    extra={"schedule_id": claimed.id, "update_id": outcome.update_id, "status": outcome.status.value},
                    now=now,
                )
            if not surfaced:
                log.info(f"Schedule {claimed.id}: notification for '{claimed.owner_id}' held until quiet hours end")
        except Exception as e:
            log.warning(f"Schedule {claimed.id}: could not create notification for '{claimed.owner_id}': {e}")

    def _start_record(self, claimed: ClaimedSchedule, executed_at: datetime, trigger_type: str) -> int:
        try:
            with self.session_factory() as db:
                record = ExecutionRecord(
                    schedule_id=claimed.id,
                    owner_id=claimed.owner_id,
                    trigger_type=TriggerType(trigger_type).value,
                    executed_at=executed_at,
                    status=ExecutionStatus.RUNNING.value,
                    update_type=claimed.update_type,
                    email_sent=False,
                    email_recipients=list(claimed.recipients) if claimed.send_email else [],
                    schedule_snapshot=claimed.snapshot(),
                )
                db.add(record)
                db.commit()
                return record.id
        except SQLAlchemyError as e:
            log.critical(f"Cannot write execution history for schedule {claimed.id}: {e}", exc_info=True)
            raise StoreUnavailableError(f"Execution history unavailable: {e}") from e

    def _finish_record(self, record_id: int, outcome: ExecutionOutcome, duration_ms: int) -> ExecutionRecord:
        try:
            with self.session_factory() as db:
                record = db.get(ExecutionRecord, record_id)
                record.status = outcome.status.value
                record.finished_at = as_utc(self.clock())
                record.execution_time_ms = duration_ms
                record.created_update_id = outcome.update_id
                record.email_sent = outcome.email_sent
                record.error_message = outcome.error
                db.commit()
                db.refresh(record)
                db.expunge(record)
                return record
        except SQLAlchemyError as e:
            log.critical(f"Cannot finalize execution record #{record_id}: {e}", exc_info=True)
            raise StoreUnavailableError(f"Execution history unavailable: {e}") from e
