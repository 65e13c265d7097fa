from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import PersistenceError, RecordNotFound
from models.patient import Patient
from schemas.patient import PatientCreate, PatientResponse
from services import schedule_service
from services.record_store import RecordStore

logger = logging.getLogger(__name__)


def to_response(db: Session, p: Patient) -> PatientResponse:
    schedule = RecordStore(db).active_schedule_for(p.id)
    return PatientResponse(
        id=str(p.id),
        patient_code=p.patient_code,
        name=p.name,
        created_at=p.created_at,
        active_schedule=schedule_service.to_response(schedule) if schedule else None,
    )


def onboard_patient(db: Session, payload: PatientCreate, today: date) -> PatientResponse:
    """Register a participant together with the default schedule, in one transaction."""
    patient = Patient(name=payload.name.strip(), patient_code=payload.patient_code.strip())
    try:
        db.add(patient)
        db.flush()
        db.add(schedule_service.build_default_schedule(patient.id, today))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise PersistenceError("Patient code already exists.", patient_code=payload.patient_code) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to onboard patient %s", payload.patient_code)
        raise PersistenceError("Could not register patient.") from exc

    db.refresh(patient)
    logger.info("Onboarded patient %s with default schedule", patient.patient_code)
    return to_response(db, patient)


def get_patient(db: Session, patient_id: str) -> PatientResponse:
    p = db.get(Patient, patient_id)
    if not p:
        raise RecordNotFound("Patient not found.", patient_id=patient_id)
    return to_response(db, p)
