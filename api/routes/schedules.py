from fastapi import APIRouter

from api.deps import DbDep
from schemas.progress import ScheduleOverviewsResponse
from schemas.schedule import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from services.progress_service import list_schedule_overviews
from services.schedule_service import create_schedule, update_schedule

router = APIRouter()


@router.get("/schedules", response_model=ScheduleOverviewsResponse)
def get_schedules(db: DbDep, active_only: bool = False):
    return list_schedule_overviews(db, active_only=active_only)


@router.post("/schedules", response_model=ScheduleResponse, status_code=201)
def post_schedule(payload: ScheduleCreate, db: DbDep):
    return create_schedule(db, payload)


@router.put("/schedules/{schedule_id}", response_model=ScheduleResponse)
def put_schedule(schedule_id: str, payload: ScheduleUpdate, db: DbDep):
    return update_schedule(db, schedule_id, payload)
