from datetime import date

from pydantic import BaseModel

from models.choices import Conduction, EarSide


class AudiometryCreate(BaseModel):
    patient_id: str
    test_date: date
    ear_side: EarSide
    test_type: Conduction

    # dB HL; 3000 and 6000 Hz are recorded but do not enter the averages.
    freq_250: float | None = None
    freq_500: float | None = None
    freq_1000: float | None = None
    freq_2000: float | None = None
    freq_3000: float | None = None
    freq_4000: float | None = None
    freq_6000: float | None = None
    freq_8000: float | None = None


class AudiometryUpdate(BaseModel):
    test_date: date | None = None
    ear_side: EarSide | None = None
    test_type: Conduction | None = None
    freq_250: float | None = None
    freq_500: float | None = None
    freq_1000: float | None = None
    freq_2000: float | None = None
    freq_3000: float | None = None
    freq_4000: float | None = None
    freq_6000: float | None = None
    freq_8000: float | None = None


class AudiometryResponse(BaseModel):
    id: str
    patient_id: str
    test_date: date
    ear_side: str
    test_type: str
    freq_250: float | None = None
    freq_500: float | None = None
    freq_1000: float | None = None
    freq_2000: float | None = None
    freq_3000: float | None = None
    freq_4000: float | None = None
    freq_6000: float | None = None
    freq_8000: float | None = None
    pta_4freq: int
    pta_6freq: int


class AudiometryListResponse(BaseModel):
    patient_id: str
    results: list[AudiometryResponse]
