from datetime import datetime

from pydantic import BaseModel, Field

from schemas.schedule import ScheduleResponse


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    patient_code: str = Field(..., min_length=1, max_length=50)


class PatientResponse(BaseModel):
    id: str
    patient_code: str
    name: str
    created_at: datetime
    active_schedule: ScheduleResponse | None = None
