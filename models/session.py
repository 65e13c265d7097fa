import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class MusicSession(Base):
    __tablename__ = "music_sessions"
    __table_args__ = (
        # Concurrent submissions for the same day collide here instead of exceeding the daily limit.
        UniqueConstraint("patient_id", "session_date", "session_sequence", name="uq_music_sessions_day_sequence"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("patients.id"), index=True, nullable=False)

    session_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    session_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    music_type: Mapped[str] = mapped_column(String, nullable=False)
    volume_db_spl: Mapped[str] = mapped_column(String, nullable=False, default="65-70dB SPL")

    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    session_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Completion metadata; the only fields that change after the session is completed.
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completion_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
