from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import EngineError, PersistenceError, RecordNotFound, ValidationError
from models.choices import ALL_WEEKDAYS, ActivityKind
from models.patient import Patient
from models.schedule import ResearchSchedule
from schemas.schedule import ScheduleCreate, ScheduleResponse, ScheduleUpdate, ScheduleWithSummaryResponse
from services.eligibility import ScheduleRules
from services.progress_service import build_schedule_summary
from services.record_store import RecordStore

logger = logging.getLogger(__name__)


def _weekday_list(days) -> list[int]:
    # Empty selection means the patient may be active every day.
    values = sorted({int(d) for d in days}) if days else [int(d) for d in ALL_WEEKDAYS]
    return values


def _check(schedule: ResearchSchedule) -> None:
    if schedule.end_date < schedule.start_date:
        raise ValidationError("End date must not be before start date.", field="end_date")
    rules = ScheduleRules.from_model(schedule)
    # Surfaces ConfigurationError for frequencies the weekday set cannot satisfy.
    rules.required_per_day(ActivityKind.SESSION)
    rules.required_per_day(ActivityKind.SURVEY)


def _deactivate_active(db: Session, patient_id: str, keep_id: str | None = None) -> int:
    q = db.query(ResearchSchedule).filter(ResearchSchedule.patient_id == patient_id, ResearchSchedule.is_active.is_(True))
    if keep_id is not None:
        q = q.filter(ResearchSchedule.id != keep_id)
    count = q.update({ResearchSchedule.is_active: False}, synchronize_session="fetch")
    if count:
        logger.info("Deactivated %d schedule(s) for patient %s", count, patient_id)
    return count


def to_response(s: ResearchSchedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=str(s.id),
        patient_id=str(s.patient_id),
        start_date=s.start_date,
        end_date=s.end_date,
        total_weeks=int(s.total_weeks),
        sessions_per_week=int(s.sessions_per_week),
        session_duration_minutes=int(s.session_duration_minutes),
        total_expected_sessions=int(s.total_expected_sessions),
        days_of_week=[int(d) for d in (s.days_of_week or [])],
        music_frequency=int(s.music_frequency),
        music_frequency_unit=s.music_frequency_unit,
        survey_frequency=int(s.survey_frequency),
        survey_frequency_unit=s.survey_frequency_unit,
        selected_music_types=list(s.selected_music_types or []),
        active_survey_types=list(s.active_survey_types or []),
        is_active=bool(s.is_active),
        created_by=s.created_by,
    )


def build_default_schedule(patient_id: str, today: date) -> ResearchSchedule:
    """Schedule every new participant starts with until an administrator edits it."""
    weeks = settings.default_total_weeks
    days = _weekday_list([])
    return ResearchSchedule(
        patient_id=patient_id,
        start_date=today,
        end_date=today + timedelta(days=weeks * 7),
        total_weeks=weeks,
        days_of_week=days,
        sessions_per_week=len(days),
        session_duration_minutes=settings.default_session_duration_minutes,
        total_expected_sessions=weeks * len(days),
        music_frequency=1,
        music_frequency_unit="daily",
        survey_frequency=1,
        survey_frequency_unit="daily",
        selected_music_types=[],
        active_survey_types=list(settings.default_survey_types),
        is_active=True,
        created_by="auto-generated",
    )


def create_schedule(db: Session, payload: ScheduleCreate, created_by: str = "admin") -> ScheduleResponse:
    if not db.get(Patient, payload.patient_id):
        raise RecordNotFound("Patient not found.", patient_id=payload.patient_id)

    days = _weekday_list(payload.days_of_week)
    sessions_per_week = payload.sessions_per_week if payload.sessions_per_week is not None else len(days)
    schedule = ResearchSchedule(
        patient_id=payload.patient_id,
        start_date=payload.start_date,
        end_date=payload.end_date or payload.start_date + timedelta(days=payload.total_weeks * 7),
        total_weeks=payload.total_weeks,
        days_of_week=days,
        sessions_per_week=sessions_per_week,
        session_duration_minutes=payload.session_duration_minutes,
        total_expected_sessions=(
            payload.total_expected_sessions
            if payload.total_expected_sessions is not None
            else payload.total_weeks * sessions_per_week
        ),
        music_frequency=payload.music_frequency,
        music_frequency_unit=payload.music_frequency_unit.value,
        survey_frequency=payload.survey_frequency,
        survey_frequency_unit=payload.survey_frequency_unit.value,
        selected_music_types=list(dict.fromkeys(payload.selected_music_types)),
        active_survey_types=list(dict.fromkeys(payload.active_survey_types)),
        is_active=payload.is_active,
        created_by=created_by,
    )
    _check(schedule)

    try:
        if schedule.is_active:
            _deactivate_active(db, payload.patient_id)
        db.add(schedule)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Concurrent schedule activation for patient %s", payload.patient_id)
        raise PersistenceError("Another active schedule was created concurrently.", patient_id=payload.patient_id) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create schedule for patient %s", payload.patient_id)
        raise PersistenceError("Could not create schedule.") from exc

    db.refresh(schedule)
    logger.info("Created schedule %s for patient %s (%s)", schedule.id, schedule.patient_id, created_by)
    return to_response(schedule)


def update_schedule(db: Session, schedule_id: str, patch: ScheduleUpdate) -> ScheduleResponse:
    schedule = db.get(ResearchSchedule, schedule_id)
    if not schedule:
        raise RecordNotFound("Schedule not found.", schedule_id=schedule_id)

    fields = patch.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("Nothing to update.")

    for key in ("music_frequency_unit", "survey_frequency_unit"):
        if fields.get(key) is not None:
            fields[key] = fields[key].value
    if "days_of_week" in fields:
        fields["days_of_week"] = _weekday_list(fields["days_of_week"])
    for key in ("selected_music_types", "active_survey_types"):
        if key in fields:
            fields[key] = list(dict.fromkeys(fields[key] or []))

    # Keep the end date in step with the period unless it was edited explicitly.
    if ("start_date" in fields or "total_weeks" in fields) and "end_date" not in fields:
        start = fields.get("start_date") or schedule.start_date
        weeks = fields.get("total_weeks") or schedule.total_weeks
        fields["end_date"] = start + timedelta(days=weeks * 7)

    for key, value in fields.items():
        if value is None:
            continue
        setattr(schedule, key, value)
    try:
        _check(schedule)
    except EngineError:
        # Drop the rejected patch so the session does not carry an invalid schedule.
        db.rollback()
        raise

    try:
        if fields.get("is_active"):
            _deactivate_active(db, schedule.patient_id, keep_id=schedule.id)
        db.add(schedule)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update schedule %s", schedule_id)
        raise PersistenceError("Could not update schedule.") from exc

    db.refresh(schedule)
    return to_response(schedule)


def get_active_schedule(db: Session, patient_id: str, include_progress: bool = False) -> ScheduleWithSummaryResponse:
    schedule = RecordStore(db).active_schedule_for(patient_id)
    if not schedule:
        raise RecordNotFound("No active schedule for this patient.", patient_id=patient_id)
    response = ScheduleWithSummaryResponse(**to_response(schedule).model_dump())
    if include_progress:
        response.progress = build_schedule_summary(db, schedule)
    return response
