from datetime import date, datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import MONDAY, SUNDAY, add_schedule
from core.config import settings
from core.errors import PersistenceError, RecordNotFound, ScheduleViolation, ValidationError
from models.choices import ActivityKind
from models.patient import Patient
from models.schedule import ResearchSchedule
from models.session import MusicSession
from models.survey import SurveyResponse, SurveyScore
from schemas.schedule import ScheduleCreate, ScheduleUpdate
from schemas.sessions import SessionComplete, SessionCreate
from schemas.surveys import SurveySubmit
from services.eligibility import DecisionReason
from services.record_store import RecordStore
from services.schedule_service import create_schedule, update_schedule
from services.submission_service import complete_session, create_session, list_sessions, submit_gated, submit_survey

NOW = datetime(2024, 1, 7, 10, 30)


def _session(db, patient, music_type="classical", on=SUNDAY):
    return create_session(db, SessionCreate(patient_id=patient.id, music_type=music_type, session_date=on), now=NOW)


def _thi(db, patient, value=2, on=SUNDAY, survey_type="THI"):
    return submit_survey(
        db,
        SurveySubmit(patient_id=patient.id, survey_type=survey_type, responses=[value] * 25, survey_date=on),
        now=NOW,
    )


@pytest.fixture
def stale_counts(monkeypatch):
    """Make the first N same-day count reads return 0, as if another request had not committed yet."""

    def _install(times):
        original = RecordStore.recorded_count_for
        state = {"left": times}

        def _stale(self, patient_id, on_date, kind):
            if state["left"] > 0:
                state["left"] -= 1
                return 0
            return original(self, patient_id, on_date, kind)

        monkeypatch.setattr(RecordStore, "recorded_count_for", _stale)

    return _install


def test_sessions_get_sequence_numbers_until_daily_limit(db, patient):
    add_schedule(db, patient.id, music_frequency=2)

    first = _session(db, patient)
    second = _session(db, patient)
    assert (first.session_sequence, second.session_sequence) == (1, 2)
    assert first.session_notes.startswith("Session 1")

    with pytest.raises(ScheduleViolation) as exc_info:
        _session(db, patient)
    assert exc_info.value.reason is DecisionReason.DAILY_LIMIT_REACHED
    assert db.query(MusicSession).count() == 2


def test_limit_is_per_day(db, patient):
    add_schedule(db, patient.id)
    _session(db, patient, on=SUNDAY)
    assert _session(db, patient, on=MONDAY).session_sequence == 1


def test_without_schedule_submissions_are_unrestricted(db, patient):
    sequences = [_session(db, patient, music_type=f"type-{i}").session_sequence for i in range(5)]
    assert sequences == [1, 2, 3, 4, 5]


def test_inactive_day_and_disallowed_type_are_rejected(db, patient):
    add_schedule(db, patient.id, days_of_week=[1], selected_music_types=["classical"])

    with pytest.raises(ScheduleViolation) as inactive:
        _session(db, patient, on=SUNDAY)
    assert inactive.value.reason is DecisionReason.INACTIVE_DAY

    with pytest.raises(ScheduleViolation) as wrong_type:
        _session(db, patient, music_type="jazz", on=MONDAY)
    assert wrong_type.value.reason is DecisionReason.TYPE_NOT_ALLOWED

    assert db.query(MusicSession).count() == 0


def test_sequence_conflict_is_retried_with_fresh_count(db, patient, stale_counts):
    add_schedule(db, patient.id, music_frequency=3)
    _session(db, patient)

    stale_counts(1)
    retried = _session(db, patient)

    assert retried.session_sequence == 2
    assert db.query(MusicSession).count() == 2


def test_conflict_retry_respects_daily_limit(db, patient, stale_counts):
    add_schedule(db, patient.id, music_frequency=1)
    _session(db, patient)

    stale_counts(1)
    with pytest.raises(ScheduleViolation) as exc_info:
        _session(db, patient)
    assert exc_info.value.reason is DecisionReason.DAILY_LIMIT_REACHED
    assert db.query(MusicSession).count() == 1


def test_persistent_conflict_gives_up(db, patient, stale_counts):
    _session(db, patient)

    stale_counts(settings.submission_max_retries + 1)
    with pytest.raises(PersistenceError):
        _session(db, patient)
    assert db.query(MusicSession).count() == 1


def test_complete_session_records_metadata(db, patient):
    created = _session(db, patient)
    done = complete_session(db, created.id, SessionComplete(completion_notes="felt calm"), now=datetime(2024, 1, 7, 11, 0))

    assert done.completed
    assert done.duration_minutes == 60
    assert done.end_time == datetime(2024, 1, 7, 11, 0)
    assert done.session_notes.endswith(" | felt calm")

    again = complete_session(db, created.id, SessionComplete(duration_minutes=45), now=datetime(2024, 1, 7, 11, 5))
    assert again.duration_minutes == 45
    assert again.session_sequence == created.session_sequence
    assert again.music_type == created.music_type


def test_complete_unknown_session(db):
    with pytest.raises(RecordNotFound):
        complete_session(db, "nope", SessionComplete(), now=NOW)


def test_list_sessions_by_date(db, patient):
    _session(db, patient, on=SUNDAY)
    _session(db, patient, on=MONDAY)
    assert list_sessions(db, patient.id).total == 2
    assert [s.session_date for s in list_sessions(db, patient.id, on_date=MONDAY).sessions] == [MONDAY]


def test_survey_submission_stores_score_and_responses(db, patient):
    add_schedule(db, patient.id, survey_frequency=3, active_survey_types=["THI", "SSQ12"])

    result = _thi(db, patient, value=3)
    assert result.responses_count == 25
    assert result.score.total_score == 100
    assert result.score.percentage_score == 100
    assert result.score.survey_sequence == 1
    assert result.score.breakdown["max_possible_score"] == 100

    responses = db.query(SurveyResponse).filter(SurveyResponse.score_id == result.score.id).all()
    assert sorted(r.question_number for r in responses) == list(range(1, 26))

    ssq = submit_survey(
        db,
        SurveySubmit(patient_id=patient.id, survey_type="SSQ12", responses=[5] * 12, survey_date=SUNDAY),
        now=NOW,
    )
    assert ssq.score.survey_sequence == 2
    assert ssq.score.percentage_score == 50


def test_survey_type_outside_schedule_is_rejected(db, patient):
    add_schedule(db, patient.id, active_survey_types=["THI"])
    with pytest.raises(ScheduleViolation) as exc_info:
        _thi(db, patient, survey_type="HHIA")
    assert exc_info.value.reason is DecisionReason.TYPE_NOT_ALLOWED


def test_malformed_survey_writes_nothing(db, patient):
    with pytest.raises(ValidationError):
        submit_survey(db, SurveySubmit(patient_id=patient.id, survey_type="THI", responses=[1] * 24), now=NOW)
    assert db.query(SurveyScore).count() == 0
    assert db.query(SurveyResponse).count() == 0


def test_failed_response_insert_rolls_back_score(db, patient, monkeypatch):
    def _broken(self, score, responses):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(RecordStore, "insert_survey_responses", _broken)

    with pytest.raises(PersistenceError):
        _thi(db, patient)
    assert db.query(SurveyScore).count() == 0
    assert db.query(SurveyResponse).count() == 0


def test_unknown_patient(db):
    with pytest.raises(RecordNotFound):
        create_session(db, SessionCreate(patient_id="ghost", music_type="classical"), now=NOW)


def test_new_schedule_deactivates_previous(db, patient):
    first = create_schedule(db, ScheduleCreate(patient_id=patient.id, start_date=SUNDAY, total_weeks=4, session_duration_minutes=30))
    second = create_schedule(
        db,
        ScheduleCreate(
            patient_id=patient.id,
            start_date=MONDAY,
            total_weeks=2,
            session_duration_minutes=45,
            days_of_week=[1, 3, 5],
        ),
    )

    assert first.days_of_week == [0, 1, 2, 3, 4, 5, 6]
    assert first.end_date == date(2024, 2, 4)
    assert first.total_expected_sessions == 28
    assert second.sessions_per_week == 3
    assert second.total_expected_sessions == 6

    active = db.query(ResearchSchedule).filter(ResearchSchedule.is_active.is_(True)).all()
    assert [s.id for s in active] == [second.id]
    assert RecordStore(db).active_schedule_for(patient.id).id == second.id


def test_update_schedule_recomputes_end_date_and_reactivates(db, patient):
    first = create_schedule(db, ScheduleCreate(patient_id=patient.id, start_date=SUNDAY, total_weeks=4, session_duration_minutes=30))
    second = create_schedule(db, ScheduleCreate(patient_id=patient.id, start_date=SUNDAY, total_weeks=4, session_duration_minutes=30))

    updated = update_schedule(db, first.id, ScheduleUpdate(total_weeks=2, is_active=True, music_frequency_unit="weekly", music_frequency=3))

    assert updated.end_date == date(2024, 1, 21)
    assert updated.is_active
    assert updated.music_frequency_unit.value == "weekly"
    assert db.get(ResearchSchedule, second.id).is_active is False


def test_update_schedule_requires_changes(db, patient):
    created = create_schedule(db, ScheduleCreate(patient_id=patient.id, start_date=SUNDAY, total_weeks=4, session_duration_minutes=30))
    with pytest.raises(ValidationError):
        update_schedule(db, created.id, ScheduleUpdate())


def test_recorded_count_tracks_kinds_separately(db, patient):
    _session(db, patient)
    _thi(db, patient)
    store = RecordStore(db)
    assert store.recorded_count_for(patient.id, SUNDAY, ActivityKind.SESSION) == 1
    assert store.recorded_count_for(patient.id, SUNDAY, ActivityKind.SURVEY) == 1
    assert store.completed_count_in_range(patient.id, SUNDAY, MONDAY, ActivityKind.SESSION) == 0
    assert store.completed_count_in_range(patient.id, SUNDAY, MONDAY, ActivityKind.SURVEY) == 1


def _fk_patient(fk_db):
    p = Patient(patient_code="MT-FK", name="FK Participant")
    fk_db.add(p)
    fk_db.commit()
    return p


def test_survey_linked_to_unknown_session_is_rejected(fk_db, caplog):
    p = _fk_patient(fk_db)
    payload = SurveySubmit(
        patient_id=p.id, survey_type="THI", responses=[1] * 25, survey_date=SUNDAY, session_id="no-such-session"
    )

    with pytest.raises(RecordNotFound):
        submit_survey(fk_db, payload, now=NOW)
    assert fk_db.query(SurveyScore).count() == 0
    assert "Sequence conflict" not in caplog.text


def test_survey_linked_to_another_patients_session_is_rejected(db, patient):
    other = Patient(patient_code="MT-002", name="Other Participant")
    db.add(other)
    db.commit()
    theirs = _session(db, other)

    payload = SurveySubmit(
        patient_id=patient.id, survey_type="THI", responses=[1] * 25, survey_date=SUNDAY, session_id=theirs.id
    )
    with pytest.raises(ValidationError):
        submit_survey(db, payload, now=NOW)


def test_survey_linked_to_own_session(db, patient):
    mine = _session(db, patient)
    payload = SurveySubmit(
        patient_id=patient.id, survey_type="THI", responses=[1] * 25, survey_date=SUNDAY, session_id=mine.id
    )
    assert submit_survey(db, payload, now=NOW).score.session_id == mine.id


def test_integrity_errors_other_than_sequence_are_not_retried(fk_db):
    p = _fk_patient(fk_db)
    calls = []

    def _write(store, sequence):
        calls.append(sequence)
        return store.insert_score(
            SurveyScore(
                patient_id=p.id,
                session_id="no-such-session",
                survey_type="THI",
                survey_date=SUNDAY,
                survey_sequence=sequence,
                total_score=0,
                max_possible_score=100,
                percentage_score=0,
                completion_time=NOW,
            )
        )

    with pytest.raises(PersistenceError) as exc_info:
        submit_gated(fk_db, p.id, ActivityKind.SURVEY, "THI", SUNDAY, _write)
    assert calls == [1]
    assert "sequence" not in exc_info.value.message
    assert fk_db.query(SurveyScore).count() == 0


def test_rejected_schedule_update_leaves_schedule_untouched(db, patient):
    schedule = add_schedule(db, patient.id)
    original_end = schedule.end_date

    with pytest.raises(ValidationError):
        update_schedule(db, schedule.id, ScheduleUpdate(end_date=date(2023, 12, 1)))

    assert not db.dirty
    assert db.get(ResearchSchedule, schedule.id).end_date == original_end
