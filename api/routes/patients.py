from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query

from api.deps import DbDep, TodayDep
from schemas.audiometry import AudiometryListResponse
from schemas.patient import PatientCreate, PatientResponse
from schemas.progress import ScheduleProgressResponse
from schemas.schedule import ScheduleWithSummaryResponse
from schemas.sessions import SessionListResponse
from schemas.surveys import SurveyHistoryResponse
from services.audiometry_service import list_audiometric_records
from services.patient_service import get_patient, onboard_patient
from services.progress_service import build_schedule_progress
from services.schedule_service import get_active_schedule
from services.submission_service import list_sessions, survey_history

router = APIRouter()


@router.post("", response_model=PatientResponse, status_code=201)
def create_patient(payload: PatientCreate, db: DbDep, today: TodayDep):
    return onboard_patient(db, payload, today=today)


@router.get("/{patient_id}", response_model=PatientResponse)
def read_patient(patient_id: str, db: DbDep):
    return get_patient(db, patient_id)


@router.get("/{patient_id}/schedule", response_model=ScheduleWithSummaryResponse)
def patient_schedule(patient_id: str, db: DbDep, include_progress: bool = False):
    return get_active_schedule(db, patient_id, include_progress=include_progress)


@router.get("/{patient_id}/progress", response_model=ScheduleProgressResponse)
def patient_progress(patient_id: str, db: DbDep, today: TodayDep):
    return build_schedule_progress(db, patient_id, today=today)


@router.get("/{patient_id}/sessions", response_model=SessionListResponse)
def patient_sessions(patient_id: str, db: DbDep, on_date: Annotated[date | None, Query(alias="date")] = None):
    return list_sessions(db, patient_id, on_date=on_date)


@router.get("/{patient_id}/surveys", response_model=SurveyHistoryResponse)
def patient_surveys(patient_id: str, db: DbDep, survey_type: str | None = None):
    return survey_history(db, patient_id, survey_type=survey_type)


@router.get("/{patient_id}/audiometry", response_model=AudiometryListResponse)
def patient_audiometry(patient_id: str, db: DbDep):
    return AudiometryListResponse(patient_id=patient_id, results=list_audiometric_records(db, patient_id))
