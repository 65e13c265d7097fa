"""
Questionnaire scoring.

Each instrument is a ScoringStrategy registered under its survey type; any
type without a registered strategy falls back to a generic 1-5 Likert sum.
Call sites only ever go through score_survey().
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from core.errors import ValidationError
from services.utils import coerce_number, round_half_up


@dataclass(frozen=True)
class SurveyScoreResult:
    total_score: float
    max_possible_score: int
    percentage_score: float
    breakdown: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_score": self.total_score,
            "max_possible_score": self.max_possible_score,
            "percentage_score": self.percentage_score,
        }


@dataclass(frozen=True)
class ScoringStrategy:
    instrument: str
    item_count: int | None
    min_value: int
    max_value: int
    points_per_item: int
    # raw response -> points; None means the raw value counts as-is
    point_map: dict[int, int] | None = None
    allow_fractions: bool = False
    structured: bool = True
    percentage_digits: int | None = None

    def points(self, question_number: int, raw) -> float:
        value = coerce_number(raw, f"responses[{question_number}]")
        if not self.allow_fractions and not value.is_integer():
            raise ValidationError(
                f"{self.instrument} question {question_number} expects a whole number.",
                question_number=question_number,
            )
        if not self.min_value <= value <= self.max_value:
            raise ValidationError(
                f"{self.instrument} question {question_number} must be between {self.min_value} and {self.max_value}.",
                question_number=question_number,
                value=value,
            )
        if self.point_map is not None:
            return self.point_map[int(value)]
        return int(value) if value.is_integer() else value

    def score(self, responses: Sequence, expected_items: int | None = None) -> SurveyScoreResult:
        expected = self.item_count if self.item_count is not None else expected_items
        if not responses:
            raise ValidationError(f"{self.instrument} needs at least one response.", field="responses")
        if expected is not None and len(responses) != expected:
            raise ValidationError(
                f"{self.instrument} expects {expected} responses, got {len(responses)}.",
                field="responses",
                expected=expected,
                received=len(responses),
            )

        total = sum(self.points(i, raw) for i, raw in enumerate(responses, start=1))
        max_score = len(responses) * self.points_per_item
        percentage = total / max_score * 100
        if self.percentage_digits is not None:
            percentage = round_half_up(percentage, self.percentage_digits)

        result = SurveyScoreResult(total_score=total, max_possible_score=max_score, percentage_score=percentage)
        if self.structured:
            # Subscales are not defined yet; the breakdown mirrors the primary result.
            return SurveyScoreResult(total, max_score, percentage, breakdown=result.as_dict())
        return result


_HANDICAP_POINTS = {1: 0, 2: 2, 3: 4}  # no / sometimes / yes

STRATEGIES: dict[str, ScoringStrategy] = {
    "THI": ScoringStrategy("THI", item_count=25, min_value=1, max_value=3, points_per_item=4, point_map=_HANDICAP_POINTS),
    "HHIA": ScoringStrategy("HHIA", item_count=25, min_value=1, max_value=3, points_per_item=4, point_map=_HANDICAP_POINTS),
    "SSQ12": ScoringStrategy("SSQ12", item_count=12, min_value=0, max_value=10, points_per_item=10, allow_fractions=True),
}


def likert_strategy(instrument: str) -> ScoringStrategy:
    return ScoringStrategy(
        instrument,
        item_count=None,
        min_value=1,
        max_value=5,
        points_per_item=5,
        structured=False,
        percentage_digits=1,
    )


def strategy_for(instrument: str) -> ScoringStrategy:
    return STRATEGIES.get(instrument) or likert_strategy(instrument)


def score_survey(instrument: str, responses: Sequence, expected_items: int | None = None) -> SurveyScoreResult:
    if not instrument or not str(instrument).strip():
        raise ValidationError("Survey type is required.", field="survey_type")
    if isinstance(responses, (str, bytes)) or not isinstance(responses, Sequence):
        raise ValidationError("Responses must be an ordered list.", field="responses")
    return strategy_for(str(instrument).strip()).score(responses, expected_items=expected_items)
