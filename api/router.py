from fastapi import APIRouter

from api.routes import audiometry, patients, schedules, sessions, surveys

api_router = APIRouter()

api_router.include_router(patients.router, tags=["patients"], prefix="/patients")
api_router.include_router(schedules.router, tags=["schedules"])
api_router.include_router(sessions.router, tags=["sessions"])
api_router.include_router(surveys.router, tags=["surveys"])
api_router.include_router(audiometry.router, tags=["audiometry"])
