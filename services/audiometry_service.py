from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import PersistenceError, RecordNotFound, ValidationError
from models.audiometry import AudiometricRecord
from models.patient import Patient
from schemas.audiometry import AudiometryCreate, AudiometryResponse, AudiometryUpdate
from services.record_store import RecordStore
from services.utils import coerce_number, round_half_up

logger = logging.getLogger(__name__)

TEST_FREQUENCIES_HZ = (250, 500, 1000, 2000, 3000, 4000, 6000, 8000)
PTA4_FREQUENCIES_HZ = (500, 1000, 2000, 4000)
PTA6_FREQUENCIES_HZ = (250, 500, 1000, 2000, 4000, 8000)


@dataclass(frozen=True)
class AudiometricAverages:
    avg4: int
    avg6: int


def compute_audiometric_averages(thresholds: Mapping) -> AudiometricAverages:
    """
    4- and 6-frequency pure-tone averages in whole dB HL.

    Simple arithmetic means. Whether the 6-frequency average should be weighted
    is pending clinical review, so no weighting is applied here.
    """
    try:
        by_hz = {int(hz): value for hz, value in thresholds.items()}
    except (TypeError, ValueError):
        raise ValidationError("Threshold keys must be frequencies in Hz.", field="thresholds") from None

    def _mean(frequencies: tuple[int, ...]) -> int:
        values = []
        for hz in frequencies:
            if by_hz.get(hz) is None:
                raise ValidationError(f"Threshold at {hz} Hz is required.", field=f"freq_{hz}")
            values.append(coerce_number(by_hz[hz], f"freq_{hz}"))
        return round_half_up(sum(values) / len(values))

    return AudiometricAverages(avg4=_mean(PTA4_FREQUENCIES_HZ), avg6=_mean(PTA6_FREQUENCIES_HZ))


def _thresholds(payload) -> dict[int, float | None]:
    return {hz: getattr(payload, f"freq_{hz}") for hz in TEST_FREQUENCIES_HZ}


def to_response(r: AudiometricRecord) -> AudiometryResponse:
    return AudiometryResponse(
        id=str(r.id),
        patient_id=str(r.patient_id),
        test_date=r.test_date,
        ear_side=r.ear_side,
        test_type=r.test_type,
        **{f"freq_{hz}": getattr(r, f"freq_{hz}") for hz in TEST_FREQUENCIES_HZ},
        pta_4freq=int(r.pta_4freq),
        pta_6freq=int(r.pta_6freq),
    )


def create_audiometric_record(db: Session, payload: AudiometryCreate) -> AudiometryResponse:
    if not db.get(Patient, payload.patient_id):
        raise RecordNotFound("Patient not found.", patient_id=payload.patient_id)

    thresholds = _thresholds(payload)
    averages = compute_audiometric_averages(thresholds)

    record = AudiometricRecord(
        patient_id=payload.patient_id,
        test_date=payload.test_date,
        ear_side=payload.ear_side.value,
        test_type=payload.test_type.value,
        pta_4freq=averages.avg4,
        pta_6freq=averages.avg6,
        **{f"freq_{hz}": value for hz, value in thresholds.items()},
    )
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to store PTA result for patient %s", payload.patient_id)
        raise PersistenceError("Could not store audiometric record.") from exc
    db.refresh(record)
    return to_response(record)


def update_audiometric_record(db: Session, record_id: str, patch: AudiometryUpdate) -> AudiometryResponse:
    record = db.get(AudiometricRecord, record_id)
    if not record:
        raise RecordNotFound("Audiometric record not found.", record_id=record_id)

    # Merge the patch over stored thresholds, then always recompute the derived averages.
    thresholds = {hz: getattr(record, f"freq_{hz}") for hz in TEST_FREQUENCIES_HZ}
    for hz in TEST_FREQUENCIES_HZ:
        key = f"freq_{hz}"
        if key in patch.model_fields_set:
            thresholds[hz] = getattr(patch, key)
    averages = compute_audiometric_averages(thresholds)

    if patch.test_date is not None:
        record.test_date = patch.test_date
    if patch.ear_side is not None:
        record.ear_side = patch.ear_side.value
    if patch.test_type is not None:
        record.test_type = patch.test_type.value

    try:
        RecordStore(db).update_audiometric_record(record, thresholds, averages)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update PTA result %s", record_id)
        raise PersistenceError("Could not update audiometric record.") from exc
    db.refresh(record)
    return to_response(record)


def list_audiometric_records(db: Session, patient_id: str) -> list[AudiometryResponse]:
    if not db.get(Patient, patient_id):
        raise RecordNotFound("Patient not found.", patient_id=patient_id)
    records = (
        db.query(AudiometricRecord)
        .filter(AudiometricRecord.patient_id == patient_id)
        .order_by(AudiometricRecord.test_date.desc(), AudiometricRecord.ear_side, AudiometricRecord.test_type)
        .all()
    )
    return [to_response(r) for r in records]
