from datetime import date

from pydantic import BaseModel, Field

from models.choices import FrequencyUnit, Weekday
from schemas.progress import ScheduleSummary


class ScheduleCreate(BaseModel):
    patient_id: str
    start_date: date
    total_weeks: int = Field(..., ge=1, le=104)
    session_duration_minutes: int = Field(..., ge=1, le=600)
    end_date: date | None = None
    sessions_per_week: int | None = Field(None, ge=0, le=100)
    total_expected_sessions: int | None = Field(None, ge=0)

    # Empty => every day of the week.
    days_of_week: list[Weekday] = Field(default_factory=list)

    music_frequency: int = Field(1, ge=1, le=100)
    music_frequency_unit: FrequencyUnit = FrequencyUnit.DAILY
    survey_frequency: int = Field(1, ge=1, le=100)
    survey_frequency_unit: FrequencyUnit = FrequencyUnit.DAILY

    selected_music_types: list[str] = Field(default_factory=list)
    active_survey_types: list[str] = Field(default_factory=list)
    is_active: bool = True


class ScheduleUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    total_weeks: int | None = Field(None, ge=1, le=104)
    sessions_per_week: int | None = Field(None, ge=0, le=100)
    session_duration_minutes: int | None = Field(None, ge=1, le=600)
    total_expected_sessions: int | None = Field(None, ge=0)
    days_of_week: list[Weekday] | None = None
    music_frequency: int | None = Field(None, ge=1, le=100)
    music_frequency_unit: FrequencyUnit | None = None
    survey_frequency: int | None = Field(None, ge=1, le=100)
    survey_frequency_unit: FrequencyUnit | None = None
    selected_music_types: list[str] | None = None
    active_survey_types: list[str] | None = None
    is_active: bool | None = None


class ScheduleResponse(BaseModel):
    id: str
    patient_id: str
    start_date: date
    end_date: date
    total_weeks: int
    sessions_per_week: int
    session_duration_minutes: int
    total_expected_sessions: int
    days_of_week: list[int]
    music_frequency: int
    music_frequency_unit: FrequencyUnit
    survey_frequency: int
    survey_frequency_unit: FrequencyUnit
    selected_music_types: list[str]
    active_survey_types: list[str]
    is_active: bool
    created_by: str | None = None


class ScheduleWithSummaryResponse(ScheduleResponse):
    # Only filled when the caller asks for progress.
    progress: ScheduleSummary | None = None
