from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models.audiometry import AudiometricRecord
from models.choices import ActivityKind
from models.schedule import ResearchSchedule
from models.session import MusicSession
from models.survey import SurveyResponse, SurveyScore


class RecordStore:
    """
    Typed lookups and writes the adherence engine needs from the database.
    Writes only flush; the caller owns commit/rollback so a unit stays atomic.
    """

    def __init__(self, db: Session):
        self.db = db

    def active_schedule_for(self, patient_id: str) -> ResearchSchedule | None:
        return (
            self.db.query(ResearchSchedule)
            .filter(ResearchSchedule.patient_id == patient_id, ResearchSchedule.is_active.is_(True))
            .order_by(ResearchSchedule.created_at.desc())
            .first()
        )

    def recorded_count_for(self, patient_id: str, on_date: date, kind: ActivityKind) -> int:
        """Records of this kind already written for the patient on that date (used for limits and sequencing)."""
        if kind is ActivityKind.SESSION:
            stmt = select(func.count(MusicSession.id)).where(
                MusicSession.patient_id == patient_id, MusicSession.session_date == on_date
            )
        else:
            stmt = select(func.count(SurveyScore.id)).where(
                SurveyScore.patient_id == patient_id, SurveyScore.survey_date == on_date
            )
        return int(self.db.execute(stmt).scalar_one())

    def completed_count_in_range(self, patient_id: str, start: date, end: date, kind: ActivityKind) -> int:
        if kind is ActivityKind.SESSION:
            stmt = select(func.count(MusicSession.id)).where(
                MusicSession.patient_id == patient_id,
                MusicSession.completed.is_(True),
                MusicSession.session_date.between(start, end),
            )
        else:
            # A stored score is a completed survey.
            stmt = select(func.count(SurveyScore.id)).where(
                SurveyScore.patient_id == patient_id,
                SurveyScore.survey_date.between(start, end),
            )
        return int(self.db.execute(stmt).scalar_one())

    def session_count_in_range(self, patient_id: str, start: date, end: date) -> int:
        stmt = select(func.count(MusicSession.id)).where(
            MusicSession.patient_id == patient_id,
            MusicSession.session_date.between(start, end),
        )
        return int(self.db.execute(stmt).scalar_one())

    def sessions_between(self, patient_id: str, start: date, end: date) -> list[MusicSession]:
        return (
            self.db.query(MusicSession)
            .filter(MusicSession.patient_id == patient_id, MusicSession.session_date.between(start, end))
            .order_by(MusicSession.session_date.asc(), MusicSession.session_sequence.asc())
            .all()
        )

    def scores_between(self, patient_id: str, start: date, end: date) -> list[SurveyScore]:
        return (
            self.db.query(SurveyScore)
            .filter(SurveyScore.patient_id == patient_id, SurveyScore.survey_date.between(start, end))
            .order_by(SurveyScore.survey_date.asc(), SurveyScore.survey_sequence.asc())
            .all()
        )

    def insert_activity_record(self, record: MusicSession) -> MusicSession:
        self.db.add(record)
        self.db.flush()
        return record

    def insert_score(self, score: SurveyScore) -> SurveyScore:
        self.db.add(score)
        self.db.flush()
        return score

    def insert_survey_responses(self, score: SurveyScore, responses: list[float]) -> list[SurveyResponse]:
        rows = [
            SurveyResponse(
                patient_id=score.patient_id,
                score_id=score.id,
                session_id=score.session_id,
                survey_type=score.survey_type,
                question_number=i,
                response_value=float(value),
            )
            for i, value in enumerate(responses, start=1)
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def update_audiometric_record(self, record: AudiometricRecord, thresholds: dict[int, float | None], averages) -> AudiometricRecord:
        for hz, value in thresholds.items():
            setattr(record, f"freq_{hz}", value)
        record.pta_4freq = averages.avg4
        record.pta_6freq = averages.avg6
        self.db.add(record)
        self.db.flush()
        return record
