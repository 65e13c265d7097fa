from enum import Enum, IntEnum


class Weekday(IntEnum):
    # Sunday-first numbering, as stored in schedules.
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, day) -> "Weekday":
        return cls(day.isoweekday() % 7)


ALL_WEEKDAYS = tuple(Weekday)


class FrequencyUnit(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ActivityKind(str, Enum):
    SESSION = "session"
    SURVEY = "survey"


class EarSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class Conduction(str, Enum):
    AIR = "AC"
    BONE = "BC"
