import asyncio
import logging
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.models.execution_record import ExecutionRecord
from app.models.notification import Notification
from app.models.schedule import Schedule
from app.scheduler import RETENTION_JOB_ID, TICK_JOB_ID, SchedulerService
from app.services.execution_runner import StoreUnavailableError
from app.services.preference_service import update_preferences
from app.utils.time_window import as_utc

from tests.conftest import NOW


@pytest.fixture
def scheduler(session_factory, runner, gate, clock) -> SchedulerService:
    return SchedulerService(session_factory, runner, gate, clock=clock, max_workers=2)


@pytest.mark.asyncio
class TestTick:
    @pytest.mark.asyncio
    async def test_dispatches_due_schedules(self, scheduler, session_factory, make_schedule):
        first = make_schedule(next_run=NOW - timedelta(minutes=10))
        second = make_schedule(next_run=NOW - timedelta(minutes=1), frequency="weekly", day_of_week=1)
        make_schedule(next_run=NOW + timedelta(minutes=1))

        result = await scheduler.tick()

        assert (result.due, result.claimed, result.executed) == (2, 2, 2)
        assert result.statuses == {first: "success", second: "success"}

        with session_factory() as db:
            records = db.query(ExecutionRecord).order_by(ExecutionRecord.schedule_id).all()
            assert [record.schedule_id for record in records] == [first, second]
            assert as_utc(db.get(Schedule, first).next_run) == NOW.replace(day=16, hour=9)
            assert as_utc(db.get(Schedule, second).next_run) == NOW.replace(day=20, hour=9)

    @pytest.mark.asyncio
    async def test_nothing_due(self, scheduler, make_schedule):
        make_schedule(next_run=NOW + timedelta(hours=1))
        result = await scheduler.tick()
        assert (result.due, result.claimed, result.executed) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_once_schedule_runs_exactly_once(self, scheduler, session_factory, make_schedule, clock):
        schedule_id = make_schedule(frequency="once", once_date=date(2025, 1, 15), next_run=NOW - timedelta(hours=3))

        first = await scheduler.tick()
        clock.advance(minutes=1)
        second = await scheduler.tick()

        assert first.executed == 1
        assert second.due == 0
        with session_factory() as db:
            schedule = db.get(Schedule, schedule_id)
            assert schedule.is_active is False
            assert schedule.next_run is None
            assert db.query(ExecutionRecord).count() == 1

    @pytest.mark.asyncio
    async def test_runner_exception_does_not_stop_tick(self, session_factory, gate, clock, make_schedule, caplog):
        broken = make_schedule(next_run=NOW - timedelta(minutes=2))
        healthy = make_schedule(next_run=NOW - timedelta(minutes=1))

        async def run(claimed, trigger_type):
            if claimed.id == broken:
                raise RuntimeError("unexpected")
            return MagicMock(status="success")

        runner = AsyncMock()
        runner.run.side_effect = run
        service = SchedulerService(session_factory, runner, gate, clock=clock)

        with caplog.at_level(logging.ERROR, logger="app.scheduler"):
            result = await service.tick()

        assert result.claimed == 2
        assert result.executed == 1
        assert result.statuses == {healthy: "success"}
        assert f"Execution of schedule {broken} raised" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, session_factory, gate, clock, make_schedule):
        for minutes in range(1, 6):
            make_schedule(next_run=NOW - timedelta(minutes=minutes))

        in_flight = 0
        peak = 0

        async def run(claimed, trigger_type):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return MagicMock(status="success")

        runner = AsyncMock()
        runner.run.side_effect = run
        service = SchedulerService(session_factory, runner, gate, clock=clock, max_workers=2)

        result = await service.tick()

        assert result.executed == 5
        assert peak == 2

    @pytest.mark.asyncio
    async def test_store_failure_is_fatal(self, runner, gate, clock, caplog):
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        service = SchedulerService(broken_factory, runner, gate, clock=clock)

        with caplog.at_level(logging.CRITICAL, logger="app.scheduler"):
            with pytest.raises(OperationalError):
                await service.tick()
        assert "Schedule store unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_history_store_failure_is_raised_after_dispatch(self, session_factory, gate, clock, make_schedule):
        make_schedule(next_run=NOW - timedelta(minutes=2))
        make_schedule(next_run=NOW - timedelta(minutes=1))

        runner = AsyncMock()
        runner.run.side_effect = StoreUnavailableError("Execution history unavailable")
        service = SchedulerService(session_factory, runner, gate, clock=clock)

        with pytest.raises(StoreUnavailableError):
            await service.tick()
        assert runner.run.await_count == 2

    @pytest.mark.asyncio
    async def test_held_notifications_released_after_quiet_hours(self, scheduler, session_factory, make_schedule, clock):
        with session_factory() as db:
            update_preferences(db, "admin", {"quiet_hours": {
                "enabled": True, "start_time": "22:00", "end_time": "08:00", "timezone": "UTC",
            }})
        clock.now = NOW.replace(hour=23, minute=15)
        make_schedule(next_run=clock.now - timedelta(minutes=15), time_of_day="23:00")

        night = await scheduler.tick()
        assert night.executed == 1
        assert night.released_notifications == 0
        with session_factory() as db:
            assert db.query(Notification).filter(Notification.surfaced == False).count() == 1  # noqa: E712

        clock.now = NOW.replace(day=16, hour=8, minute=5)
        morning = await scheduler.tick()

        assert morning.released_notifications == 1
        with session_factory() as db:
            notification = db.query(Notification).one()
            assert notification.surfaced is True
            assert as_utc(notification.surfaced_at) == clock.now


class TestRetention:
    def test_cleanup_history_uses_retention(self, scheduler, session_factory):
        with session_factory() as db:
            for age_days in (10, 120):
                db.add(ExecutionRecord(
                    schedule_id=1, owner_id="admin", trigger_type="scheduled",
                    executed_at=NOW - timedelta(days=age_days), status="success",
                    update_type="daily", email_recipients=[],
                ))
            db.commit()

        assert scheduler.cleanup_history() == 1

        with session_factory() as db:
            assert db.query(ExecutionRecord).count() == 1


@pytest.mark.asyncio
class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, scheduler):
        scheduler.start(run_immediately=False)
        try:
            assert scheduler.running
            assert scheduler.scheduler.get_job(TICK_JOB_ID) is not None
            assert scheduler.scheduler.get_job(RETENTION_JOB_ID) is not None

            # Starting twice is harmless
            scheduler.start(run_immediately=False)
        finally:
            scheduler.shutdown()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_tick_job_does_not_overlap(self, scheduler):
        scheduler.start(run_immediately=False)
        try:
            job = scheduler.scheduler.get_job(TICK_JOB_ID)
            assert job.max_instances == 1
            assert job.coalesce is True
        finally:
            scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_immediate_first_tick_uses_injected_clock(self, scheduler, clock):
        scheduler.start(run_immediately=True)
        try:
            job = scheduler.scheduler.get_job(TICK_JOB_ID)
            assert job.next_run_time == clock()
        finally:
            scheduler.shutdown()
