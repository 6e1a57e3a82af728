"""
Timezone conversion between UTC instants and wall-clock parts in an IANA zone.

Every instant handled here is an aware UTC ``datetime``. Naive values coming
from the database (TIMESTAMP WITHOUT TIME ZONE) are UTC by convention and
are normalized with ``ensure_utc``.
"""

import logging
from datetime import UTC, date, datetime, timedelta
from typing import NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Indexed by date.weekday() (Monday == 0)
WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class ZonedParts(NamedTuple):
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int


def _load_zone(name: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def is_valid_time_zone(name: object) -> bool:
    if not isinstance(name, str) or not name.strip():
        return False
    return _load_zone(name.strip()) is not None


def resolve_time_zone(name: object, fallback: str) -> str:
    """Return ``name`` if it is a known IANA zone, else ``fallback``.

    Never raises: availability must degrade to a default zone rather than
    fail the request.
    """
    if is_valid_time_zone(name):
        return name.strip()  # type: ignore[union-attr]
    if name:
        logger.warning("Unknown time zone %r, falling back to %s", name, fallback)
    return fallback if is_valid_time_zone(fallback) else "UTC"


def get_zone(name: str) -> ZoneInfo:
    return _load_zone(resolve_time_zone(name, "UTC")) or ZoneInfo("UTC")


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Aware UTC datetime; naive input is taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def zoned_parts(instant: datetime, time_zone: str) -> ZonedParts:
    """Wall-clock parts of a UTC instant as seen in ``time_zone``."""
    local = ensure_utc(instant).astimezone(get_zone(time_zone))
    return ZonedParts(local.year, local.month, local.day, local.hour, local.minute, local.second)


def offset_minutes(instant: datetime, time_zone: str) -> int:
    """Offset of ``time_zone`` from UTC at ``instant``; positive means ahead of UTC.

    Computed by reading the zoned wall clock back as if it were UTC and
    diffing against the instant.
    """
    instant = ensure_utc(instant)
    p = zoned_parts(instant, time_zone)
    as_if_utc = datetime(p.year, p.month, p.day, p.hour, p.minute, p.second, tzinfo=UTC)
    return round((as_if_utc - instant.replace(microsecond=0)).total_seconds() / 60)


def zoned_to_utc(
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
    time_zone: str,
    second: int = 0,
) -> datetime:
    """UTC instant for a wall-clock time in ``time_zone``.

    Two passes: take the wall clock as UTC, shift by the zone offset at that
    guess, then re-check the offset at the shifted instant and correct by the
    delta when a DST boundary lies between them.
    """
    guess = datetime(year, month, day, hour, minute, second, tzinfo=UTC)
    first = offset_minutes(guess, time_zone)
    guess = guess - timedelta(minutes=first)

    second_offset = offset_minutes(guess, time_zone)
    if second_offset != first:
        guess = guess - timedelta(minutes=second_offset - first)
    return guess


def add_days_to_ymd(year: int, month: int, day: int, days: int) -> tuple[int, int, int]:
    """Calendar arithmetic on a date, independent of any zone."""
    d = date(year, month, day) + timedelta(days=days)
    return d.year, d.month, d.day


def weekday_key(instant: datetime, time_zone: str) -> str:
    """``mon``..``sun`` for the local day of ``instant`` in ``time_zone``."""
    p = zoned_parts(instant, time_zone)
    return WEEKDAY_KEYS[date(p.year, p.month, p.day).weekday()]


def minutes_since_midnight(instant: datetime, time_zone: str) -> int:
    p = zoned_parts(instant, time_zone)
    return p.hour * 60 + p.minute


def local_date(instant: datetime, time_zone: str) -> date:
    p = zoned_parts(instant, time_zone)
    return date(p.year, p.month, p.day)


def local_day_bounds(day: date, time_zone: str) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a local calendar day; 23 or 25 hours long on DST days."""
    start = zoned_to_utc(day.year, day.month, day.day, 0, 0, time_zone)
    nxt = day + timedelta(days=1)
    return start, zoned_to_utc(nxt.year, nxt.month, nxt.day, 0, 0, time_zone)
