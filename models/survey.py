import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class SurveyResponse(Base):
    __tablename__ = "survey_responses"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("patients.id"), index=True, nullable=False)
    score_id: Mapped[str] = mapped_column(String, ForeignKey("survey_scores.id"), index=True, nullable=False)
    session_id: Mapped[str | None] = mapped_column(String, ForeignKey("music_sessions.id"), nullable=True)

    survey_type: Mapped[str] = mapped_column(String, nullable=False)
    question_number: Mapped[int] = mapped_column(Integer, nullable=False)
    response_value: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class SurveyScore(Base):
    __tablename__ = "survey_scores"
    __table_args__ = (
        UniqueConstraint("patient_id", "survey_date", "survey_sequence", name="uq_survey_scores_day_sequence"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("patients.id"), index=True, nullable=False)
    session_id: Mapped[str | None] = mapped_column(String, ForeignKey("music_sessions.id"), nullable=True)

    survey_type: Mapped[str] = mapped_column(String, index=True, nullable=False)
    survey_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    survey_sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    total_score: Mapped[float] = mapped_column(Float, nullable=False)
    max_possible_score: Mapped[int] = mapped_column(Integer, nullable=False)
    percentage_score: Mapped[float] = mapped_column(Float, nullable=False)
    breakdown: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    completion_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    session_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
