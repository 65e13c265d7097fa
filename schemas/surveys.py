from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class SurveySubmit(BaseModel):
    patient_id: str
    survey_type: str = Field(..., min_length=1, max_length=50)
    # One raw answer per question, in question-number order. Validated by the scorer.
    responses: list[Any]
    session_id: str | None = None
    survey_date: date | None = None
    survey_notes: str | None = Field(None, max_length=2000)


class SurveyScoreItem(BaseModel):
    id: str
    patient_id: str
    session_id: str | None = None
    survey_type: str
    survey_date: date
    survey_sequence: int
    total_score: float
    max_possible_score: int
    percentage_score: float
    breakdown: dict[str, Any] | None = None
    completion_time: datetime
    session_notes: str | None = None


class SurveySubmitResponse(BaseModel):
    score: SurveyScoreItem
    responses_count: int


class SurveyTimelinePoint(BaseModel):
    date: date
    survey_type: str
    percentage_score: float
    total_score: float


class SurveyHistoryResponse(BaseModel):
    patient_id: str
    scores: dict[str, list[SurveyScoreItem]]
    timeline: list[SurveyTimelinePoint]
