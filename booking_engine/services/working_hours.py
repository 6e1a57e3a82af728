"""
Weekly working-hours rules.

The stored blob is keyed by abbreviated weekday (``sun``..``sat``) with
``{"enabled": bool, "start": "HH:MM", "end": "HH:MM"}`` entries. It is parsed
once into a ``WeeklySchedule``; anything missing, disabled or malformed
becomes a closed day.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from booking_engine.core.errors import OutsideWorkingHours
from booking_engine.core.timezones import WEEKDAY_KEYS, local_date, minutes_since_midnight, zoned_parts

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Weekday(str, Enum):
    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @classmethod
    def of(cls, d: date) -> "Weekday":
        return cls(WEEKDAY_KEYS[d.weekday()])


@dataclass(frozen=True)
class DayRule:
    """Open window of one weekday, in minutes since local midnight."""

    start_minute: int
    end_minute: int

    def contains(self, start_minute: int, end_minute: int) -> bool:
        return self.start_minute <= start_minute and end_minute <= self.end_minute


def parse_hhmm(value: Any) -> int | None:
    if not isinstance(value, str):
        return None
    m = _HHMM.match(value.strip())
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def _parse_day(key: str, entry: Any) -> DayRule | None:
    if not isinstance(entry, dict) or entry.get("enabled") is not True:
        return None
    start = parse_hhmm(entry.get("start"))
    end = parse_hhmm(entry.get("end"))
    if start is None or end is None or end <= start:
        logger.info("Treating %s as closed, bad hours: %r", key, entry)
        return None
    return DayRule(start, end)


@dataclass(frozen=True)
class WeeklySchedule:
    rules: dict[Weekday, DayRule | None]

    @classmethod
    def parse(cls, blob: Any) -> "WeeklySchedule":
        raw = blob if isinstance(blob, dict) else {}
        return cls({day: _parse_day(day.value, raw.get(day.value)) for day in Weekday})

    def rule_for_date(self, d: date) -> DayRule | None:
        return self.rules.get(Weekday.of(d))

    def rule_for(self, instant: datetime, time_zone: str) -> DayRule | None:
        """Rule for the local weekday of ``instant`` in ``time_zone``."""
        return self.rule_for_date(local_date(instant, time_zone))


def ensure_within_working_hours(
    start: datetime, end: datetime, schedule: WeeklySchedule, time_zone: str
) -> None:
    """Raise OutsideWorkingHours unless [start, end) fits one local day's open window."""
    if end <= start:
        raise OutsideWorkingHours("Appointment must end after it starts.")
    start_day = local_date(start, time_zone)
    rule = schedule.rule_for_date(start_day)
    if rule is None:
        raise OutsideWorkingHours(f"Closed on {Weekday.of(start_day).value}.")

    end_parts = zoned_parts(end, time_zone)
    end_day = date(end_parts.year, end_parts.month, end_parts.day)
    end_minute = end_parts.hour * 60 + end_parts.minute
    if end_parts.second:
        end_minute += 1
    if end_day != start_day:
        raise OutsideWorkingHours("Appointment must start and end on the same local day.")

    if not rule.contains(minutes_since_midnight(start, time_zone), end_minute):
        raise OutsideWorkingHours("That time is outside working hours.")
