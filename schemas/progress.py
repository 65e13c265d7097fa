from datetime import date

from pydantic import BaseModel

from schemas.sessions import SessionResponse
from schemas.surveys import SurveyTimelinePoint


class OverallProgress(BaseModel):
    sessions_completed: int
    sessions_expected: int
    surveys_completed: int
    completion_percentage: int  # may exceed 100


class WeeklyProgressItem(BaseModel):
    week: int
    week_start: date
    week_end: date
    sessions_completed: int
    sessions_expected: int
    surveys_completed: int
    completion_rate: int
    is_current_or_past: bool
    is_current_week: bool


class ScheduleInfo(BaseModel):
    total_weeks: int
    sessions_per_week: int
    session_duration: int
    start_date: date
    end_date: date
    days_of_week: list[int]


class ScheduleProgressResponse(BaseModel):
    schedule_id: str
    overall: OverallProgress
    weekly_progress: list[WeeklyProgressItem]
    schedule_info: ScheduleInfo


class ScheduleSummary(BaseModel):
    sessions_completed: int
    sessions_total: int
    sessions_expected: int
    session_progress_percentage: int
    surveys_completed: int
    recent_sessions: list[SessionResponse]
    recent_surveys: list[SurveyTimelinePoint]


class ScheduleOverviewItem(BaseModel):
    schedule_id: str
    patient_id: str
    patient_code: str
    patient_name: str
    start_date: date
    end_date: date
    is_active: bool
    total_expected_sessions: int
    total_sessions: int
    completed_sessions: int
    completion_percentage: int


class ScheduleOverviewsResponse(BaseModel):
    schedules: list[ScheduleOverviewItem]
    total: int
