from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from services.eligibility import DecisionReason


class EngineError(Exception):
    """Base class for adherence and scoring failures surfaced to callers."""

    code = "engine_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class ValidationError(EngineError):
    """Missing or malformed input (response count, non-numeric threshold, ...)."""

    code = "validation_error"


class ConfigurationError(EngineError):
    """The schedule itself cannot be evaluated, e.g. weekly frequency with no active weekdays."""

    code = "configuration_error"


class ScheduleViolation(EngineError):
    code = "schedule_violation"

    def __init__(self, reason: DecisionReason, message: str | None = None, **details: Any) -> None:
        self.reason = reason
        super().__init__(message or f"Submission rejected: {reason.value}", reason=reason.value, **details)


class ComputationError(EngineError):
    code = "computation_error"


class PersistenceError(EngineError):
    """A write failed and the whole unit was rolled back."""

    code = "persistence_error"


class RecordNotFound(EngineError):
    code = "not_found"
