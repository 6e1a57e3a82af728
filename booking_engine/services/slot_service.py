import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.errors import NotFound, ValidationError
from booking_engine.core.timezones import (
    ensure_utc,
    local_date,
    local_day_bounds,
    resolve_time_zone,
    zoned_parts,
    zoned_to_utc,
)
from booking_engine.models.professional import LocationType, ProfessionalProfile, ServiceOffering
from booking_engine.services.busy_intervals import BusyInterval, load_busy_intervals
from booking_engine.services.conflicts import has_conflict
from booking_engine.services.working_hours import DayRule, WeeklySchedule

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityQuery:
    professional_id: int
    service_id: int | None = None
    offering_id: int | None = None
    location_type: LocationType | None = None
    limit: int | None = None
    other_pros_limit: int | None = None


@dataclass
class ProAvailability:
    professional: ProfessionalProfile
    time_zone: str
    offering_id: int | None
    location_type: LocationType | None
    price: Decimal | None
    duration_minutes: int | None
    slots: list[datetime]
    is_primary: bool = False


@dataclass
class AvailabilityResult:
    time_zone: str
    service_id: int | None
    primary_pro: ProAvailability
    other_pros: list[ProAvailability] = field(default_factory=list)


@dataclass
class BookingTerms:
    """Zone, location mode and offering snapshot a professional is evaluated with."""

    time_zone: str
    offering_id: int | None
    location_type: LocationType | None
    price: Decimal | None
    duration_minutes: int | None

    @property
    def slot_minutes(self) -> int:
        return self.duration_minutes or settings.default_service_duration_minutes


@dataclass
class DayAvailability:
    professional_id: int
    day: date
    day_start: datetime
    day_end: datetime
    terms: BookingTerms
    slots: list[datetime]


@dataclass
class AvailableDay:
    day: date
    slot_count: int


@dataclass
class AvailabilitySummary:
    professional_id: int
    terms: BookingTerms
    days: list[AvailableDay]


def clamp_limit(value: int | None, default: int, maximum: int) -> int:
    """Non-positive or missing limits fall back to the default; large ones are capped."""
    if not value or value <= 0:
        return default
    return min(value, maximum)


def day_slot_candidates(
    day: date, rule: DayRule, time_zone: str, duration_minutes: int, step_minutes: int
) -> Iterator[datetime]:
    """Candidate starts for one local day, in UTC.

    Wall-clock times skipped by a DST spring-forward do not exist and are
    dropped, so the candidates stay unique and increasing.
    """
    minute = rule.start_minute
    while minute + duration_minutes <= rule.end_minute:
        hour, mm = divmod(minute, 60)
        minute += step_minutes
        start = zoned_to_utc(day.year, day.month, day.day, hour, mm, time_zone)
        parts = zoned_parts(start, time_zone)
        if (parts.hour, parts.minute) != (hour, mm):
            continue
        yield start


def generate_slots(
    *,
    now: datetime,
    duration_minutes: int,
    limit: int,
    time_zone: str,
    schedule: WeeklySchedule,
    busy: list[BusyInterval],
    horizon_days: int | None = None,
    step_minutes: int | None = None,
    lead_time_minutes: int | None = None,
) -> list[datetime]:
    """Upcoming bookable slot starts as aware UTC datetimes, in chronological order.

    Days are walked in the professional's zone from today through
    ``horizon_days``. Within an open day candidates start at the opening
    minute and advance by ``step_minutes``; a candidate is kept only if it
    ends by closing, starts after the lead time, lies within the horizon and
    does not overlap any busy interval. Stops after ``limit`` slots.
    """
    horizon_days = settings.slot_horizon_days if horizon_days is None else horizon_days
    step_minutes = step_minutes or settings.slot_step_minutes
    lead_time_minutes = settings.slot_lead_time_minutes if lead_time_minutes is None else lead_time_minutes

    now = ensure_utc(now)
    earliest = now + timedelta(minutes=lead_time_minutes)
    horizon_end = now + timedelta(days=horizon_days)
    duration = timedelta(minutes=duration_minutes)
    today = local_date(now, time_zone)

    out: list[datetime] = []
    if limit <= 0 or duration_minutes <= 0:
        return out
    for day_offset in range(horizon_days + 1):
        day = today + timedelta(days=day_offset)
        rule = schedule.rule_for_date(day)
        if rule is None:
            continue
        for start in day_slot_candidates(day, rule, time_zone, duration_minutes, step_minutes):
            if start < earliest:
                continue
            if start > horizon_end:
                return out
            if has_conflict(start, start + duration, busy):
                continue
            out.append(start)
            if len(out) >= limit:
                return out
    return out


def slots_for_day(
    *,
    day: date,
    now: datetime,
    duration_minutes: int,
    time_zone: str,
    schedule: WeeklySchedule,
    busy: list[BusyInterval],
    step_minutes: int | None = None,
    lead_time_minutes: int | None = None,
) -> list[datetime]:
    """Every free slot start on one local day, with the same rules as ``generate_slots``."""
    rule = schedule.rule_for_date(day)
    if rule is None or duration_minutes <= 0:
        return []
    step_minutes = step_minutes or settings.slot_step_minutes
    lead_time_minutes = settings.slot_lead_time_minutes if lead_time_minutes is None else lead_time_minutes
    earliest = ensure_utc(now) + timedelta(minutes=lead_time_minutes)
    duration = timedelta(minutes=duration_minutes)
    return [
        start
        for start in day_slot_candidates(day, rule, time_zone, duration_minutes, step_minutes)
        if start >= earliest and not has_conflict(start, start + duration, busy)
    ]


async def compute_next_slots(
    session: AsyncSession,
    professional_id: int,
    duration_minutes: int,
    limit: int,
    time_zone: str,
    working_hours: WeeklySchedule,
    now: datetime,
) -> list[datetime]:
    """Load the professional's busy time over the horizon and generate slots against it."""
    now = ensure_utc(now)
    busy = await load_busy_intervals(
        session,
        professional_id,
        window_start=now,
        window_end=now + timedelta(days=settings.slot_horizon_days + 1),
        duration_minutes=duration_minutes,
        now=now,
    )
    return generate_slots(
        now=now,
        duration_minutes=duration_minutes,
        limit=limit,
        time_zone=time_zone,
        schedule=working_hours,
        busy=busy,
    )


def resolve_location_mode(
    offering: ServiceOffering, requested: LocationType | None
) -> LocationType | None:
    """The requested mode if offered, else salon, else mobile."""
    if requested == LocationType.SALON and offering.offers_in_salon:
        return LocationType.SALON
    if requested == LocationType.MOBILE and offering.offers_mobile:
        return LocationType.MOBILE
    if offering.offers_in_salon:
        return LocationType.SALON
    if offering.offers_mobile:
        return LocationType.MOBILE
    return None


def offering_terms(
    offering: ServiceOffering, mode: LocationType | None
) -> tuple[Decimal | None, int | None]:
    """(price, duration_minutes) for a location mode."""
    if mode == LocationType.MOBILE:
        return offering.mobile_price, offering.mobile_duration_minutes
    if mode == LocationType.SALON:
        return offering.salon_price, offering.salon_duration_minutes
    return None, None


async def _find_offering(
    session: AsyncSession, professional_id: int, service_id: int | None, offering_id: int | None
) -> ServiceOffering | None:
    if offering_id is not None:
        q = select(ServiceOffering).where(
            ServiceOffering.id == offering_id,
            ServiceOffering.professional_id == professional_id,
            ServiceOffering.is_active.is_(True),
        )
    elif service_id is not None:
        q = (
            select(ServiceOffering)
            .where(
                ServiceOffering.professional_id == professional_id,
                ServiceOffering.service_id == service_id,
                ServiceOffering.is_active.is_(True),
            )
            .order_by(ServiceOffering.id)
        )
    else:
        return None
    result = await session.execute(q)
    return result.scalars().first()


def booking_terms(
    pro: ProfessionalProfile, offering: ServiceOffering | None, requested_mode: LocationType | None
) -> BookingTerms:
    mode = resolve_location_mode(offering, requested_mode) if offering else None
    price, duration = offering_terms(offering, mode) if offering else (None, None)
    return BookingTerms(
        time_zone=resolve_time_zone(pro.time_zone, settings.default_time_zone),
        offering_id=offering.id if offering else None,
        location_type=mode,
        price=price,
        duration_minutes=duration,
    )


async def _pro_availability(
    session: AsyncSession,
    pro: ProfessionalProfile,
    offering: ServiceOffering | None,
    requested_mode: LocationType | None,
    limit: int,
    now: datetime,
    is_primary: bool = False,
) -> ProAvailability:
    terms = booking_terms(pro, offering, requested_mode)
    slots = await compute_next_slots(
        session,
        pro.id,
        terms.slot_minutes,
        limit,
        terms.time_zone,
        WeeklySchedule.parse(pro.working_hours),
        now,
    )
    return ProAvailability(
        professional=pro,
        time_zone=terms.time_zone,
        offering_id=terms.offering_id,
        location_type=terms.location_type,
        price=terms.price,
        duration_minutes=terms.duration_minutes,
        slots=slots,
        is_primary=is_primary,
    )


async def _load_professional(
    session: AsyncSession, query: AvailabilityQuery
) -> tuple[ProfessionalProfile, ServiceOffering | None]:
    pro = await session.get(ProfessionalProfile, query.professional_id)
    if pro is None:
        raise NotFound("Professional not found")
    offering = await _find_offering(session, pro.id, query.service_id, query.offering_id)
    return pro, offering


async def get_availability(
    session: AsyncSession, query: AvailabilityQuery, now: datetime
) -> AvailabilityResult:
    """Next slots for a professional and, when a service is given, for other
    professionals offering the same service."""
    limit = clamp_limit(query.limit, settings.availability_default_limit, settings.availability_max_limit)
    other_limit = clamp_limit(
        query.other_pros_limit, settings.other_pros_default_limit, settings.other_pros_max_limit
    )

    pro, offering = await _load_professional(session, query)
    service_id = query.service_id
    if service_id is None and offering is not None:
        service_id = offering.service_id

    primary = await _pro_availability(
        session, pro, offering, query.location_type, limit, now, is_primary=True
    )

    others: list[ProAvailability] = []
    if service_id is not None:
        result = await session.execute(
            select(ServiceOffering, ProfessionalProfile)
            .join(ProfessionalProfile, ProfessionalProfile.id == ServiceOffering.professional_id)
            .where(
                ServiceOffering.service_id == service_id,
                ServiceOffering.is_active.is_(True),
                ServiceOffering.professional_id != pro.id,
            )
            .order_by(ServiceOffering.id)
            .limit(other_limit)
        )
        other_slot_limit = min(settings.other_pros_slot_limit, limit)
        for other_offering, other_pro in result.all():
            others.append(
                await _pro_availability(
                    session, other_pro, other_offering, query.location_type, other_slot_limit, now
                )
            )

    logger.debug(
        "Availability for pro %s: %d slots, %d other pros", pro.id, len(primary.slots), len(others)
    )
    return AvailabilityResult(
        time_zone=primary.time_zone,
        service_id=service_id,
        primary_pro=primary,
        other_pros=others,
    )


async def get_day_availability(
    session: AsyncSession, query: AvailabilityQuery, day: date, now: datetime
) -> DayAvailability:
    """All free slots on one local day of the professional.

    Rejects days before today and days more than ``day_max_days_ahead``
    after it, both judged in the professional's zone.
    """
    pro, offering = await _load_professional(session, query)
    terms = booking_terms(pro, offering, query.location_type)
    now = ensure_utc(now)

    today = local_date(now, terms.time_zone)
    if day < today:
        raise ValidationError("Date is in the past.")
    if day > today + timedelta(days=settings.day_max_days_ahead):
        raise ValidationError(f"Date must be within {settings.day_max_days_ahead} days.")

    day_start, day_end = local_day_bounds(day, terms.time_zone)
    busy = await load_busy_intervals(
        session,
        pro.id,
        window_start=day_start,
        window_end=day_end,
        duration_minutes=terms.slot_minutes,
        now=now,
    )
    slots = slots_for_day(
        day=day,
        now=now,
        duration_minutes=terms.slot_minutes,
        time_zone=terms.time_zone,
        schedule=WeeklySchedule.parse(pro.working_hours),
        busy=busy,
    )
    return DayAvailability(
        professional_id=pro.id,
        day=day,
        day_start=day_start,
        day_end=day_end,
        terms=terms,
        slots=slots,
    )


async def get_availability_summary(
    session: AsyncSession, query: AvailabilityQuery, now: datetime
) -> AvailabilitySummary:
    """Days from today through ``summary_days_ahead`` that have at least one free slot."""
    pro, offering = await _load_professional(session, query)
    terms = booking_terms(pro, offering, query.location_type)
    schedule = WeeklySchedule.parse(pro.working_hours)
    now = ensure_utc(now)

    today = local_date(now, terms.time_zone)
    last = today + timedelta(days=settings.summary_days_ahead)
    _, window_end = local_day_bounds(last, terms.time_zone)
    busy = await load_busy_intervals(
        session,
        pro.id,
        window_start=now,
        window_end=window_end,
        duration_minutes=terms.slot_minutes,
        now=now,
    )

    days: list[AvailableDay] = []
    for offset in range(settings.summary_days_ahead + 1):
        day = today + timedelta(days=offset)
        count = len(
            slots_for_day(
                day=day,
                now=now,
                duration_minutes=terms.slot_minutes,
                time_zone=terms.time_zone,
                schedule=schedule,
                busy=busy,
            )
        )
        if count:
            days.append(AvailableDay(day=day, slot_count=count))
    logger.debug("Availability summary for pro %s: %d open days", pro.id, len(days))
    return AvailabilitySummary(professional_id=pro.id, terms=terms, days=days)
