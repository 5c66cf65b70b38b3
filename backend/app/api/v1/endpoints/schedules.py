"""Schedule endpoints: CRUD, activation toggle and manual runs."""

from typing import Annotated, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.auth import get_current_active_user
from app.database import get_db
from app.schemas.auth import User
from app.schemas.history import ExecutionRecordResponse
from app.schemas.schedule import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from app.services import schedule_service
from app.services.execution_runner import ExecutionRunner
from app.services.schedule_service import ScheduleValidationError

log = logging.getLogger(__name__)
router = APIRouter()


def get_execution_runner(request: Request) -> ExecutionRunner:
    """The runner built at startup; overridden in tests."""
    runner = getattr(request.app.state, "execution_runner", None)
    if runner is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Execution runner not available")
    return runner


def _not_found():
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule not found")


@router.get("/", response_model=List[ScheduleResponse])
async def read_schedules(
    update_type: Optional[str] = Query(None, description="Filter by update type: 'daily' or 'weekly'"),
    is_active: Optional[bool] = Query(None, description="Filter by active state"),
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """List the current user's schedules, soonest first."""
    return schedule_service.list_schedules(db, current_user.username, update_type=update_type, is_active=is_active)


@router.post("/", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    schedule: ScheduleCreate,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    try:
        return schedule_service.create_schedule(db, current_user.username, schedule)
    except ScheduleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def read_schedule(
    schedule_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    db_schedule = schedule_service.get_schedule(db, current_user.username, schedule_id)
    if db_schedule is None:
        raise _not_found()
    return db_schedule


@router.put("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: int,
    schedule: ScheduleUpdate,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """Update a schedule; timing changes recompute its next run."""
    try:
        db_schedule = schedule_service.update_schedule(db, current_user.username, schedule_id, schedule)
    except ScheduleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if db_schedule is None:
        raise _not_found()
    return db_schedule


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    """Delete a schedule. Its execution history is kept."""
    if not schedule_service.delete_schedule(db, current_user.username, schedule_id):
        raise _not_found()


@router.post("/{schedule_id}/toggle", response_model=ScheduleResponse)
async def toggle_schedule(
    schedule_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    db: Session = Depends(get_db)
):
    try:
        db_schedule = schedule_service.toggle_schedule(db, current_user.username, schedule_id)
    except ScheduleValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if db_schedule is None:
        raise _not_found()
    return db_schedule


@router.post("/{schedule_id}/run", response_model=ExecutionRecordResponse)
async def run_schedule(
    schedule_id: int,
    current_user: Annotated[User, Depends(get_current_active_user)] = None,
    runner: ExecutionRunner = Depends(get_execution_runner),
    db: Session = Depends(get_db)
):
    """Execute a schedule immediately and return the resulting execution record."""
    record = await schedule_service.run_schedule_now(db, current_user.username, schedule_id, runner)
    if record is None:
        raise _not_found()
    return ExecutionRecordResponse.from_record(record)
