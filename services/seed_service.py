from datetime import date

from sqlalchemy.orm import Session

from models.patient import Patient
from services.schedule_service import build_default_schedule

DEMO_PATIENT_CODE = "DEMO-001"


def seed_demo_data(db: Session) -> None:
    # Idempotent: a single demo participant on the default schedule.
    patient = db.query(Patient).filter(Patient.patient_code == DEMO_PATIENT_CODE).first()
    if patient:
        return

    patient = Patient(patient_code=DEMO_PATIENT_CODE, name="Demo Participant")
    db.add(patient)
    db.flush()
    db.add(build_default_schedule(patient.id, date.today()))
    db.commit()
