"""Execution history endpoints: listing, statistics and deletion."""

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.auth import get_current_active_user
from app.database import get_db
from app.schemas.auth import User
from app.schemas.history import (
    ExecutionRecordResponse,
    ExecutionStatistics,
    PaginatedExecutionRecords,
    ScheduleHistoryResponse,
    ScheduleStatistics,
)
from app.services import history_service

router = APIRouter()


def _parse_day(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(f"{value}T23:59:59" if end_of_day else f"{value}T00:00:00")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid date '{value}', expected YYYY-MM-DD")


@router.get("/", response_model=PaginatedExecutionRecords)
async def read_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    schedule_id: Optional[int] = Query(None, description="Filter by schedule"),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status: 'running', 'success', 'partial' or 'failed'"),
    start_date: Optional[str] = Query(None, description="Filter executed_at >= YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="Filter executed_at <= YYYY-MM-DD"),
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """List execution records, newest first."""
    records, total = history_service.list_history(
        db,
        current_user.username,
        schedule_id=schedule_id,
        status=status_filter,
        start_date=_parse_day(start_date),
        end_date=_parse_day(end_date, end_of_day=True),
        skip=skip,
        limit=limit,
    )
    return PaginatedExecutionRecords(
        data=[ExecutionRecordResponse.from_record(record) for record in records],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=ExecutionStatistics)
async def read_statistics(
    days: int = Query(30, ge=1, le=365),
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """Execution statistics over the last `days` days."""
    return history_service.get_statistics(db, current_user.username, days=days)


@router.get("/schedule/{schedule_id}", response_model=ScheduleHistoryResponse)
async def read_schedule_history(
    schedule_id: int,
    limit: int = Query(10, ge=1, le=200),
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """Recent executions of one schedule plus its per-status statistics."""
    records, total = history_service.list_history(db, current_user.username, schedule_id=schedule_id, limit=limit)
    statistics = history_service.get_schedule_statistics(db, current_user.username, schedule_id)
    return ScheduleHistoryResponse(
        data=[ExecutionRecordResponse.from_record(record) for record in records],
        total=total,
        statistics=ScheduleStatistics(**statistics),
    )


@router.delete("/schedule/{schedule_id}")
async def delete_schedule_history(
    schedule_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    deleted = history_service.delete_schedule_history(db, current_user.username, schedule_id)
    return {"deleted": deleted}


@router.get("/{record_id}", response_model=ExecutionRecordResponse)
async def read_history_record(
    record_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    record = history_service.get_record(db, current_user.username, record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Execution record not found")
    return ExecutionRecordResponse.from_record(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history_record(
    record_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    if not history_service.delete_record(db, current_user.username, record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Execution record not found")
