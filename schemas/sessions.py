from datetime import date, datetime

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    patient_id: str
    music_type: str = Field(..., min_length=1, max_length=100)
    # Defaults to the server's current date.
    session_date: date | None = None
    session_notes: str | None = Field(None, max_length=2000)


class SessionComplete(BaseModel):
    duration_minutes: int | None = Field(None, ge=1, le=600)
    completion_notes: str | None = Field(None, max_length=2000)


class SessionResponse(BaseModel):
    id: str
    patient_id: str
    session_date: date
    session_sequence: int
    music_type: str
    volume_db_spl: str
    start_time: datetime
    session_notes: str | None = None
    completed: bool = False
    end_time: datetime | None = None
    duration_minutes: int | None = None
    completion_time: datetime | None = None


class SessionListResponse(BaseModel):
    patient_id: str
    sessions: list[SessionResponse]
    total: int
