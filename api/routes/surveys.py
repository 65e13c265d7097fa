from fastapi import APIRouter

from api.deps import DbDep, NowDep
from schemas.surveys import SurveySubmit, SurveySubmitResponse
from services.submission_service import submit_survey

router = APIRouter()


@router.post("/surveys", response_model=SurveySubmitResponse, status_code=201)
def post_survey(payload: SurveySubmit, db: DbDep, now: NowDep):
    return submit_survey(db, payload, now=now)
