from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

from core.errors import ScheduleViolation, ValidationError
from models.choices import ActivityKind, FrequencyUnit, Weekday
from models.schedule import ResearchSchedule
from services.frequency import resolve_required_per_day

logger = logging.getLogger(__name__)


class DecisionReason(str, Enum):
    UNRESTRICTED = "NO_ACTIVE_SCHEDULE_IS_UNRESTRICTED"
    INACTIVE_DAY = "INACTIVE_DAY"
    TYPE_NOT_ALLOWED = "TYPE_NOT_ALLOWED"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"


@dataclass(frozen=True)
class ScheduleRules:
    """
    Validated, engine-side view of a research schedule.
    Weekdays and allowed types are finite sets; membership is checked once, on construction.
    """

    start_date: date
    end_date: date
    total_weeks: int
    weekdays: frozenset[Weekday]
    session_frequency: int
    session_unit: FrequencyUnit
    survey_frequency: int
    survey_unit: FrequencyUnit
    allowed_music_types: frozenset[str] = frozenset()
    allowed_survey_types: frozenset[str] = frozenset()
    total_expected_sessions: int = 0

    @classmethod
    def from_model(cls, schedule: ResearchSchedule) -> "ScheduleRules":
        return cls(
            start_date=schedule.start_date,
            end_date=schedule.end_date,
            total_weeks=int(schedule.total_weeks),
            weekdays=parse_weekdays(schedule.days_of_week or []),
            session_frequency=int(schedule.music_frequency or 1),
            session_unit=parse_unit(schedule.music_frequency_unit or "daily"),
            survey_frequency=int(schedule.survey_frequency or 1),
            survey_unit=parse_unit(schedule.survey_frequency_unit or "daily"),
            allowed_music_types=frozenset(schedule.selected_music_types or []),
            allowed_survey_types=frozenset(schedule.active_survey_types or []),
            total_expected_sessions=int(schedule.total_expected_sessions or 0),
        )

    def allowed_types(self, kind: ActivityKind) -> frozenset[str]:
        return self.allowed_music_types if kind is ActivityKind.SESSION else self.allowed_survey_types

    def required_per_day(self, kind: ActivityKind) -> int:
        if kind is ActivityKind.SESSION:
            return resolve_required_per_day(self.session_frequency, self.session_unit, len(self.weekdays))
        return resolve_required_per_day(self.survey_frequency, self.survey_unit, len(self.weekdays))

    def is_active_day(self, day: date) -> bool:
        return Weekday.of(day) in self.weekdays


def parse_weekdays(values) -> frozenset[Weekday]:
    try:
        return frozenset(Weekday(int(v)) for v in values)
    except (TypeError, ValueError):
        raise ValidationError("Weekdays must be integers between 0 (Sunday) and 6 (Saturday).", field="days_of_week") from None


def parse_unit(value) -> FrequencyUnit:
    try:
        return FrequencyUnit(value)
    except ValueError:
        raise ValidationError(f"Unknown frequency unit: {value!r}.", field="frequency_unit") from None


@dataclass(frozen=True)
class SubmissionDecision:
    eligible: bool
    reason: DecisionReason | None = None
    required_per_day: int | None = None
    already_recorded: int = 0

    @property
    def next_sequence(self) -> int:
        return self.already_recorded + 1


def evaluate_submission(
    rules: ScheduleRules | None,
    kind: ActivityKind,
    activity_type: str,
    on_date: date,
    already_recorded: int,
) -> SubmissionDecision:
    if already_recorded < 0:
        raise ValidationError("Already-recorded count cannot be negative.", field="already_recorded")

    if rules is None:
        return SubmissionDecision(eligible=True, reason=DecisionReason.UNRESTRICTED, already_recorded=already_recorded)

    if not rules.is_active_day(on_date):
        return SubmissionDecision(eligible=False, reason=DecisionReason.INACTIVE_DAY, already_recorded=already_recorded)

    allowed = rules.allowed_types(kind)
    if allowed and activity_type not in allowed:
        return SubmissionDecision(eligible=False, reason=DecisionReason.TYPE_NOT_ALLOWED, already_recorded=already_recorded)

    required = rules.required_per_day(kind)
    if already_recorded >= required:
        return SubmissionDecision(
            eligible=False,
            reason=DecisionReason.DAILY_LIMIT_REACHED,
            required_per_day=required,
            already_recorded=already_recorded,
        )

    return SubmissionDecision(eligible=True, required_per_day=required, already_recorded=already_recorded)


def ensure_eligible(
    rules: ScheduleRules | None,
    kind: ActivityKind,
    activity_type: str,
    on_date: date,
    already_recorded: int,
) -> SubmissionDecision:
    decision = evaluate_submission(rules, kind, activity_type, on_date, already_recorded)
    if not decision.eligible:
        logger.info(
            "Rejected %s submission (%s) on %s: %s", kind.value, activity_type, on_date.isoformat(), decision.reason.value
        )
        details = {"kind": kind.value, "date": on_date.isoformat()}
        if decision.required_per_day is not None:
            details.update(completed=decision.already_recorded, required=decision.required_per_day)
        raise ScheduleViolation(decision.reason, **details)
    return decision
