"""Half-open interval overlap checks shared by slot generation and reschedules."""

from collections.abc import Iterable
from datetime import datetime

from booking_engine.services.busy_intervals import BusyInterval


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """True iff [a_start, a_end) and [b_start, b_end) share time; touching ends do not."""
    return a_start < b_end and b_start < a_end


def find_conflicts(
    start: datetime, end: datetime, intervals: Iterable[BusyInterval]
) -> list[BusyInterval]:
    return [bi for bi in intervals if overlaps(start, end, bi.start, bi.end)]


def has_conflict(start: datetime, end: datetime, intervals: Iterable[BusyInterval]) -> bool:
    return any(overlaps(start, end, bi.start, bi.end) for bi in intervals)
