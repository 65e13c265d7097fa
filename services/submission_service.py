"""
Schedule-gated submissions of music sessions and questionnaires.

The day's record count is read, checked against the active schedule and
turned into the next sequence number inside one transaction. Two requests
racing on the same patient/day end up with the same sequence number; the
unique (patient, date, sequence) constraint rejects the loser, which then
re-reads the count and is evaluated again (and may now hit the daily limit).
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Callable, TypeVar

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import PersistenceError, RecordNotFound, ValidationError
from models.choices import ActivityKind
from models.patient import Patient
from models.session import MusicSession
from models.survey import SurveyScore
from schemas.sessions import SessionComplete, SessionCreate, SessionListResponse, SessionResponse
from schemas.surveys import (
    SurveyHistoryResponse,
    SurveyScoreItem,
    SurveySubmit,
    SurveySubmitResponse,
    SurveyTimelinePoint,
)
from services.eligibility import ScheduleRules, ensure_eligible
from services.record_store import RecordStore
from services.survey_scoring import score_survey
from services.utils import coerce_number

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SESSION_MINUTES = 60

# Unique (patient, date, sequence) constraints on music_sessions and survey_scores.
SEQUENCE_CONSTRAINT_MARKERS = (
    "uq_music_sessions_day_sequence",
    "uq_survey_scores_day_sequence",
    "music_sessions.session_sequence",
    "survey_scores.survey_sequence",
)


def _require_patient(db: Session, patient_id: str) -> None:
    if not db.get(Patient, patient_id):
        raise RecordNotFound("Patient not found.", patient_id=patient_id)


def _require_own_session(db: Session, patient_id: str, session_id: str) -> None:
    s = db.get(MusicSession, session_id)
    if not s:
        raise RecordNotFound("Session not found.", session_id=session_id)
    if s.patient_id != patient_id:
        raise ValidationError("Session belongs to another patient.", field="session_id", session_id=session_id)


def is_sequence_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is a day-sequence one (Postgres names it, SQLite lists its columns)."""
    message = str(exc.orig)
    return any(marker in message for marker in SEQUENCE_CONSTRAINT_MARKERS)


def submit_gated(
    db: Session,
    patient_id: str,
    kind: ActivityKind,
    activity_type: str,
    on_date: date,
    write: Callable[[RecordStore, int], T],
) -> T:
    """
    Run read-count -> evaluate -> write(sequence) as one unit, retrying on sequence conflicts.

    `write` receives the store and the sequence number to use and must only flush;
    this function commits, or rolls back everything `write` did.
    """
    store = RecordStore(db)
    attempts = settings.submission_max_retries + 1
    for attempt in range(1, attempts + 1):
        schedule = store.active_schedule_for(patient_id)
        rules = ScheduleRules.from_model(schedule) if schedule else None
        already = store.recorded_count_for(patient_id, on_date, kind)
        decision = ensure_eligible(rules, kind, activity_type, on_date, already)

        try:
            result = write(store, decision.next_sequence)
            db.commit()
            return result
        except IntegrityError as exc:
            db.rollback()
            if not is_sequence_conflict(exc):
                logger.exception("Integrity error storing %s for patient %s", kind.value, patient_id)
                raise PersistenceError(f"Could not store {kind.value}.", patient_id=patient_id) from exc
            logger.warning(
                "Sequence conflict on %s %s for patient %s (attempt %d/%d)",
                kind.value,
                on_date.isoformat(),
                patient_id,
                attempt,
                attempts,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to store %s for patient %s", kind.value, patient_id)
            raise PersistenceError(f"Could not store {kind.value}.") from exc
        except Exception:
            db.rollback()
            raise

    raise PersistenceError(
        f"Could not allocate a {kind.value} sequence number after {attempts} attempts.",
        patient_id=patient_id,
        date=on_date.isoformat(),
    )


def session_to_response(s: MusicSession) -> SessionResponse:
    return SessionResponse(
        id=str(s.id),
        patient_id=str(s.patient_id),
        session_date=s.session_date,
        session_sequence=int(s.session_sequence),
        music_type=s.music_type,
        volume_db_spl=s.volume_db_spl,
        start_time=s.start_time,
        session_notes=s.session_notes,
        completed=bool(s.completed),
        end_time=s.end_time,
        duration_minutes=s.duration_minutes,
        completion_time=s.completion_time,
    )


def create_session(db: Session, payload: SessionCreate, now: datetime) -> SessionResponse:
    _require_patient(db, payload.patient_id)
    on_date = payload.session_date or now.date()

    def _write(store: RecordStore, sequence: int) -> MusicSession:
        return store.insert_activity_record(
            MusicSession(
                patient_id=payload.patient_id,
                session_date=on_date,
                session_sequence=sequence,
                music_type=payload.music_type,
                start_time=now,
                session_notes=payload.session_notes or f"Session {sequence} - started {now:%H:%M:%S}",
            )
        )

    session = submit_gated(db, payload.patient_id, ActivityKind.SESSION, payload.music_type, on_date, _write)
    db.refresh(session)
    return session_to_response(session)


def complete_session(db: Session, session_id: str, payload: SessionComplete, now: datetime) -> SessionResponse:
    s = db.get(MusicSession, session_id)
    if not s:
        raise RecordNotFound("Session not found.", session_id=session_id)

    duration = payload.duration_minutes or DEFAULT_SESSION_MINUTES
    note = payload.completion_notes or f"Session completed - {now:%H:%M:%S} ({duration} min)"

    s.end_time = now
    s.completion_time = now
    s.duration_minutes = duration
    s.completed = True
    s.session_notes = f"{s.session_notes or ''} | {note}"
    try:
        db.add(s)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to complete session %s", session_id)
        raise PersistenceError("Could not complete session.") from exc
    db.refresh(s)
    return session_to_response(s)


def list_sessions(db: Session, patient_id: str, on_date: date | None = None) -> SessionListResponse:
    _require_patient(db, patient_id)
    q = db.query(MusicSession).filter(MusicSession.patient_id == patient_id)
    if on_date is not None:
        q = q.filter(MusicSession.session_date == on_date)
    sessions = q.order_by(desc(MusicSession.session_date), desc(MusicSession.session_sequence)).all()
    return SessionListResponse(
        patient_id=patient_id,
        sessions=[session_to_response(s) for s in sessions],
        total=len(sessions),
    )


def score_to_item(s: SurveyScore) -> SurveyScoreItem:
    return SurveyScoreItem(
        id=str(s.id),
        patient_id=str(s.patient_id),
        session_id=s.session_id,
        survey_type=s.survey_type,
        survey_date=s.survey_date,
        survey_sequence=int(s.survey_sequence),
        total_score=float(s.total_score),
        max_possible_score=int(s.max_possible_score),
        percentage_score=float(s.percentage_score),
        breakdown=s.breakdown,
        completion_time=s.completion_time,
        session_notes=s.session_notes,
    )


def submit_survey(db: Session, payload: SurveySubmit, now: datetime) -> SurveySubmitResponse:
    _require_patient(db, payload.patient_id)
    if payload.session_id is not None:
        _require_own_session(db, payload.patient_id, payload.session_id)
    survey_type = payload.survey_type.strip()
    on_date = payload.survey_date or now.date()

    # Scoring is pure; malformed answers fail here, before anything is written.
    result = score_survey(survey_type, payload.responses)
    raw_values = [coerce_number(v, f"responses[{i}]") for i, v in enumerate(payload.responses, start=1)]

    def _write(store: RecordStore, sequence: int) -> SurveyScore:
        score = store.insert_score(
            SurveyScore(
                patient_id=payload.patient_id,
                session_id=payload.session_id,
                survey_type=survey_type,
                survey_date=on_date,
                survey_sequence=sequence,
                total_score=result.total_score,
                max_possible_score=result.max_possible_score,
                percentage_score=result.percentage_score,
                breakdown=result.breakdown,
                completion_time=now,
                session_notes=payload.survey_notes or f"{survey_type} completed - {now:%H:%M:%S} (order: {sequence})",
            )
        )
        store.insert_survey_responses(score, raw_values)
        return score

    score = submit_gated(db, payload.patient_id, ActivityKind.SURVEY, survey_type, on_date, _write)
    db.refresh(score)
    return SurveySubmitResponse(score=score_to_item(score), responses_count=len(raw_values))


def survey_history(db: Session, patient_id: str, survey_type: str | None = None) -> SurveyHistoryResponse:
    _require_patient(db, patient_id)
    q = db.query(SurveyScore).filter(SurveyScore.patient_id == patient_id)
    if survey_type:
        q = q.filter(SurveyScore.survey_type == survey_type)
    scores = q.order_by(SurveyScore.survey_date.asc(), SurveyScore.survey_sequence.asc()).all()

    by_type: dict[str, list[SurveyScoreItem]] = defaultdict(list)
    for s in scores:
        by_type[s.survey_type].append(score_to_item(s))

    return SurveyHistoryResponse(
        patient_id=patient_id,
        scores=dict(by_type),
        timeline=[
            SurveyTimelinePoint(
                date=s.survey_date,
                survey_type=s.survey_type,
                percentage_score=float(s.percentage_score),
                total_score=float(s.total_score),
            )
            for s in scores
        ],
    )
