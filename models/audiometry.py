import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class AudiometricRecord(Base):
    """
    Pure-tone audiometry for one ear and one conduction type on one test date.
    pta_4freq / pta_6freq are derived; they are rewritten whenever a threshold changes.
    """

    __tablename__ = "pta_results"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("patients.id"), index=True, nullable=False)

    test_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    ear_side: Mapped[str] = mapped_column(String, nullable=False)  # "left" | "right"
    test_type: Mapped[str] = mapped_column(String, nullable=False)  # "AC" (air) | "BC" (bone)

    # Thresholds in dB HL
    freq_250: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_500: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_1000: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_2000: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_3000: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_4000: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_6000: Mapped[float | None] = mapped_column(Float, nullable=True)
    freq_8000: Mapped[float | None] = mapped_column(Float, nullable=True)

    pta_4freq: Mapped[int] = mapped_column(Integer, nullable=False)
    pta_6freq: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
