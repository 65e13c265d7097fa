from fastapi import APIRouter

from api.deps import DbDep, NowDep
from schemas.sessions import SessionComplete, SessionCreate, SessionResponse
from services.submission_service import complete_session, create_session

router = APIRouter()


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def post_session(payload: SessionCreate, db: DbDep, now: NowDep):
    return create_session(db, payload, now=now)


@router.post("/sessions/{session_id}/complete", response_model=SessionResponse)
def post_session_complete(session_id: str, payload: SessionComplete, db: DbDep, now: NowDep):
    return complete_session(db, session_id, payload, now=now)
