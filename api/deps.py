from collections.abc import Generator
from datetime import date, datetime
from typing import Annotated

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from database.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DbDep = Annotated[Session, Depends(get_db)]


def get_today(today: Annotated[date | None, Query(description="Reference date, defaults to the server date.")] = None) -> date:
    return today or date.today()


def get_now() -> datetime:
    return datetime.now()


TodayDep = Annotated[date, Depends(get_today)]
NowDep = Annotated[datetime, Depends(get_now)]
