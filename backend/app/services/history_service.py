"""Execution history queries, statistics and retention."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.constants.execution import ExecutionStatus
from app.models.execution_record import ExecutionRecord
from app.utils.time_window import as_utc, utc_now

log = logging.getLogger(__name__)


def list_history(
    db: Session,
    owner_id: str,
    schedule_id: Optional[int] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[ExecutionRecord], int]:
    """Return one page of the owner's execution records, newest first, plus the total match count."""
    query = db.query(ExecutionRecord).filter(ExecutionRecord.owner_id == owner_id)

    if schedule_id is not None:
        query = query.filter(ExecutionRecord.schedule_id == schedule_id)
    if status:
        query = query.filter(ExecutionRecord.status == status)
    if start_date:
        query = query.filter(ExecutionRecord.executed_at >= as_utc(start_date))
    if end_date:
        query = query.filter(ExecutionRecord.executed_at <= as_utc(end_date))

    total = query.count()
    items = (
        query.order_by(ExecutionRecord.executed_at.desc(), ExecutionRecord.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def get_record(db: Session, owner_id: str, record_id: int) -> Optional[ExecutionRecord]:
    return db.query(ExecutionRecord).filter(
        ExecutionRecord.id == record_id,
        ExecutionRecord.owner_id == owner_id,
    ).first()


def delete_record(db: Session, owner_id: str, record_id: int) -> bool:
    record = get_record(db, owner_id, record_id)
    if record is None:
        return False
    db.delete(record)
    db.commit()
    return True


def delete_schedule_history(db: Session, owner_id: str, schedule_id: int) -> int:
    deleted = db.query(ExecutionRecord).filter(
        ExecutionRecord.owner_id == owner_id,
        ExecutionRecord.schedule_id == schedule_id,
    ).delete(synchronize_session=False)
    db.commit()
    log.info(f"Deleted {deleted} execution record(s) of schedule {schedule_id} for '{owner_id}'")
    return deleted


def get_schedule_statistics(db: Session, owner_id: str, schedule_id: int) -> dict:
    """Per-status execution counts and average durations for one schedule."""
    rows = (
        db.query(
            ExecutionRecord.status,
            func.count(ExecutionRecord.id),
            func.avg(ExecutionRecord.execution_time_ms),
        )
        .filter(
            ExecutionRecord.owner_id == owner_id,
            ExecutionRecord.schedule_id == schedule_id,
        )
        .group_by(ExecutionRecord.status)
        .all()
    )

    by_status = {
        status: {"count": count, "avg_execution_time_ms": round(avg or 0)}
        for status, count, avg in rows
    }
    return {
        "schedule_id": schedule_id,
        "total_executions": sum(entry["count"] for entry in by_status.values()),
        "by_status": by_status,
    }


def get_statistics(db: Session, owner_id: str, days: int = 30, now: Optional[datetime] = None) -> dict:
    """
    Summarize the owner's executions over the trailing ``days`` window.

    Success rate counts everything that did not fail, so partial runs
    (update created, email not delivered) count as successes.
    """
    since = as_utc(now or utc_now()) - timedelta(days=days)
    rows = (
        db.query(ExecutionRecord.executed_at, ExecutionRecord.status, ExecutionRecord.execution_time_ms)
        .filter(
            ExecutionRecord.owner_id == owner_id,
            ExecutionRecord.executed_at >= since,
        )
        .all()
    )

    by_status: Dict[str, int] = defaultdict(int)
    daily: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    durations = []
    for executed_at, status, execution_time_ms in rows:
        by_status[status] += 1
        day = as_utc(executed_at).date().isoformat()
        daily[day]["total"] += 1
        daily[day][status] += 1
        if execution_time_ms is not None:
            durations.append(execution_time_ms)

    total = len(rows)
    failed = by_status.get(ExecutionStatus.FAILED.value, 0)
    success_rate = round((total - failed) / total * 100, 2) if total else 0

    return {
        "period_days": days,
        "total_executions": total,
        "failed_executions": failed,
        "success_rate": success_rate,
        "average_execution_time_ms": round(sum(durations) / len(durations)) if durations else 0,
        "by_status": dict(by_status),
        "daily": [{"date": day, **dict(counts)} for day, counts in sorted(daily.items())],
    }


def cleanup_old_history(db: Session, days_to_keep: int = 90, now: Optional[datetime] = None) -> int:
    """
    Delete finished execution records older than ``days_to_keep`` days.

    Records still marked ``running`` are never deleted.
    """
    cutoff_date = as_utc(now or utc_now()) - timedelta(days=days_to_keep)

    deleted = db.query(ExecutionRecord).filter(
        ExecutionRecord.executed_at < cutoff_date,
        ExecutionRecord.status != ExecutionStatus.RUNNING.value,
    ).delete(synchronize_session=False)

    db.commit()

    log.info(f"History cleanup: deleted {deleted} execution record(s) older than {days_to_keep} days (cutoff: {cutoff_date.isoformat()})")

    return deleted
