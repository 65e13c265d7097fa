from fastapi import APIRouter

from api.deps import DbDep
from schemas.audiometry import AudiometryCreate, AudiometryResponse, AudiometryUpdate
from services.audiometry_service import create_audiometric_record, update_audiometric_record

router = APIRouter()


@router.post("/audiometry", response_model=AudiometryResponse, status_code=201)
def post_audiometry(payload: AudiometryCreate, db: DbDep):
    return create_audiometric_record(db, payload)


@router.put("/audiometry/{record_id}", response_model=AudiometryResponse)
def put_audiometry(record_id: str, payload: AudiometryUpdate, db: DbDep):
    return update_audiometric_record(db, record_id, payload)
