from __future__ import annotations

import math

from core.errors import ConfigurationError, ValidationError
from models.choices import FrequencyUnit
from services.utils import round_half_up

# Average number of weeks in a month used to spread monthly targets over active days.
WEEKS_PER_MONTH = 4.33


def resolve_required_per_day(frequency: int, unit: FrequencyUnit | str, active_day_count: int) -> int:
    """
    Required occurrences per active day for a prescribed frequency.

    daily   -> frequency, regardless of how many weekdays are active
    weekly  -> ceil(frequency / active days)
    monthly -> ceil(frequency / round(active days * 4.33))
    """
    if isinstance(frequency, bool) or not isinstance(frequency, int) or frequency < 1:
        raise ValidationError("Frequency must be a positive integer.", field="frequency", value=frequency)
    try:
        unit = FrequencyUnit(unit)
    except ValueError:
        raise ValidationError(f"Unknown frequency unit: {unit!r}.", field="unit") from None
    if not 0 <= active_day_count <= 7:
        raise ValidationError("Active weekday count must be between 0 and 7.", field="active_day_count")

    if unit is FrequencyUnit.DAILY:
        return frequency

    if active_day_count == 0:
        raise ConfigurationError(
            f"A {unit.value} frequency needs at least one active weekday.",
            unit=unit.value,
        )

    if unit is FrequencyUnit.WEEKLY:
        return math.ceil(frequency / active_day_count)

    active_days_per_month = round_half_up(active_day_count * WEEKS_PER_MONTH)
    return math.ceil(frequency / active_days_per_month)
