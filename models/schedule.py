import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class ResearchSchedule(Base):
    """
    Per-patient activity prescription for the study period.
    Only one schedule per patient may be active; older ones are deactivated, never deleted.
    """

    __tablename__ = "research_schedules"
    __table_args__ = (
        Index(
            "uq_research_schedules_active_patient",
            "patient_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("patients.id"), index=True, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_weeks: Mapped[int] = mapped_column(Integer, nullable=False)

    # Sunday=0 .. Saturday=6
    days_of_week: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=lambda: [0, 1, 2, 3, 4, 5, 6])

    sessions_per_week: Mapped[int] = mapped_column(Integer, nullable=False)
    session_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    total_expected_sessions: Mapped[int] = mapped_column(Integer, nullable=False)

    music_frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    music_frequency_unit: Mapped[str] = mapped_column(String, nullable=False, default="daily")
    survey_frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    survey_frequency_unit: Mapped[str] = mapped_column(String, nullable=False, default="daily")

    # Empty list => any type is allowed.
    selected_music_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    active_survey_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)  # "admin" | "auto-generated"

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
