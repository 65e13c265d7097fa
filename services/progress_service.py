from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from functools import partial
from typing import Callable

from sqlalchemy.orm import Session

from core.errors import RecordNotFound
from models.choices import ActivityKind
from models.patient import Patient
from models.schedule import ResearchSchedule
from schemas.progress import (
    OverallProgress,
    ScheduleInfo,
    ScheduleOverviewItem,
    ScheduleOverviewsResponse,
    ScheduleProgressResponse,
    ScheduleSummary,
    WeeklyProgressItem,
)
from schemas.surveys import SurveyTimelinePoint
from services.eligibility import ScheduleRules
from services.record_store import RecordStore
from services.submission_service import session_to_response
from services.utils import round_half_up

# (window_start, window_end, kind) -> completed records in that inclusive range
CountLookup = Callable[[date, date, ActivityKind], int]

RECENT_ITEMS = 5


@dataclass(frozen=True)
class WeekProgress:
    week: int
    week_start: date
    week_end: date
    sessions_completed: int
    sessions_expected: int
    surveys_completed: int
    completion_rate: int
    is_current_or_past: bool
    is_current_week: bool


@dataclass(frozen=True)
class ScheduleProgress:
    sessions_completed: int
    sessions_expected: int
    surveys_completed: int
    # Not clamped: over-completion shows up as > 100.
    completion_percentage: int
    weekly: list[WeekProgress] = field(default_factory=list)


def _percentage(completed: int, expected: int) -> int:
    if expected <= 0:
        return 0
    return round_half_up(completed / expected * 100)


def week_windows(rules: ScheduleRules) -> list[tuple[date, date]]:
    windows = []
    start = rules.start_date
    while start <= rules.end_date and len(windows) < rules.total_weeks:
        end = min(start + timedelta(days=6), rules.end_date)
        windows.append((start, end))
        start += timedelta(days=7)
    return windows


def expected_sessions_between(rules: ScheduleRules, start: date, end: date) -> int:
    per_day = rules.required_per_day(ActivityKind.SESSION)
    days = (end - start).days + 1
    return sum(per_day for offset in range(days) if rules.is_active_day(start + timedelta(days=offset)))


def compute_progress(rules: ScheduleRules, count_lookup: CountLookup, today: date) -> ScheduleProgress:
    weekly: list[WeekProgress] = []
    for number, (start, end) in enumerate(week_windows(rules), start=1):
        completed = count_lookup(start, end, ActivityKind.SESSION)
        expected = expected_sessions_between(rules, start, end)
        weekly.append(
            WeekProgress(
                week=number,
                week_start=start,
                week_end=end,
                sessions_completed=completed,
                sessions_expected=expected,
                surveys_completed=count_lookup(start, end, ActivityKind.SURVEY),
                completion_rate=_percentage(completed, expected),
                is_current_or_past=end <= today,
                is_current_week=start <= today <= end,
            )
        )

    total_sessions = count_lookup(rules.start_date, rules.end_date, ActivityKind.SESSION)
    total_surveys = count_lookup(rules.start_date, rules.end_date, ActivityKind.SURVEY)
    return ScheduleProgress(
        sessions_completed=total_sessions,
        sessions_expected=rules.total_expected_sessions,
        surveys_completed=total_surveys,
        completion_percentage=_percentage(total_sessions, rules.total_expected_sessions),
        weekly=weekly,
    )


def build_schedule_progress(db: Session, patient_id: str, today: date) -> ScheduleProgressResponse:
    store = RecordStore(db)
    schedule = store.active_schedule_for(patient_id)
    if not schedule:
        raise RecordNotFound("No active schedule for this patient.", patient_id=patient_id)

    rules = ScheduleRules.from_model(schedule)
    progress = compute_progress(rules, partial(store.completed_count_in_range, patient_id), today)

    return ScheduleProgressResponse(
        schedule_id=str(schedule.id),
        overall=OverallProgress(
            sessions_completed=progress.sessions_completed,
            sessions_expected=progress.sessions_expected,
            surveys_completed=progress.surveys_completed,
            completion_percentage=progress.completion_percentage,
        ),
        weekly_progress=[
            WeeklyProgressItem(
                week=w.week,
                week_start=w.week_start,
                week_end=w.week_end,
                sessions_completed=w.sessions_completed,
                sessions_expected=w.sessions_expected,
                surveys_completed=w.surveys_completed,
                completion_rate=w.completion_rate,
                is_current_or_past=w.is_current_or_past,
                is_current_week=w.is_current_week,
            )
            for w in progress.weekly
        ],
        schedule_info=ScheduleInfo(
            total_weeks=int(schedule.total_weeks),
            sessions_per_week=int(schedule.sessions_per_week),
            session_duration=int(schedule.session_duration_minutes),
            start_date=schedule.start_date,
            end_date=schedule.end_date,
            days_of_week=sorted(int(d) for d in rules.weekdays),
        ),
    )


def build_schedule_summary(db: Session, schedule: ResearchSchedule) -> ScheduleSummary:
    """Completion counts for one schedule plus the latest sessions and surveys inside its period."""
    store = RecordStore(db)
    sessions = store.sessions_between(schedule.patient_id, schedule.start_date, schedule.end_date)
    scores = store.scores_between(schedule.patient_id, schedule.start_date, schedule.end_date)
    completed = sum(1 for s in sessions if s.completed)
    expected = int(schedule.total_expected_sessions)

    return ScheduleSummary(
        sessions_completed=completed,
        sessions_total=len(sessions),
        sessions_expected=expected,
        session_progress_percentage=_percentage(completed, expected),
        surveys_completed=len(scores),
        recent_sessions=[session_to_response(s) for s in sessions[-RECENT_ITEMS:]],
        recent_surveys=[
            SurveyTimelinePoint(
                date=s.survey_date,
                survey_type=s.survey_type,
                percentage_score=float(s.percentage_score),
                total_score=float(s.total_score),
            )
            for s in scores[-RECENT_ITEMS:]
        ],
    )


def list_schedule_overviews(db: Session, active_only: bool = False) -> ScheduleOverviewsResponse:
    store = RecordStore(db)
    q = db.query(ResearchSchedule, Patient).join(Patient, Patient.id == ResearchSchedule.patient_id)
    if active_only:
        q = q.filter(ResearchSchedule.is_active.is_(True))
    rows = q.order_by(ResearchSchedule.created_at.desc()).all()

    items: list[ScheduleOverviewItem] = []
    for schedule, patient in rows:
        completed = store.completed_count_in_range(
            patient.id, schedule.start_date, schedule.end_date, ActivityKind.SESSION
        )
        items.append(
            ScheduleOverviewItem(
                schedule_id=str(schedule.id),
                patient_id=str(patient.id),
                patient_code=patient.patient_code,
                patient_name=patient.name,
                start_date=schedule.start_date,
                end_date=schedule.end_date,
                is_active=bool(schedule.is_active),
                total_expected_sessions=int(schedule.total_expected_sessions),
                total_sessions=store.session_count_in_range(patient.id, schedule.start_date, schedule.end_date),
                completed_sessions=completed,
                completion_percentage=_percentage(completed, int(schedule.total_expected_sessions)),
            )
        )

    return ScheduleOverviewsResponse(schedules=items, total=len(items))
