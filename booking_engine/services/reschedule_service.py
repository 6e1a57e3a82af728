import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.errors import (
    Forbidden,
    InvalidState,
    NotFound,
    OutsideWorkingHours,
    SchedulingConflict,
    ValidationError,
)
from booking_engine.core.security import Actor
from booking_engine.core.timezones import ensure_utc, is_valid_time_zone, resolve_time_zone, to_naive_utc
from booking_engine.models.aftercare import ClientNotificationType
from booking_engine.models.booking import Booking, BookingServiceItem, BookingStatus
from booking_engine.models.professional import ProfessionalProfile, ServiceOffering
from booking_engine.services.busy_intervals import BusySource, load_busy_intervals
from booking_engine.services.conflicts import find_conflicts
from booking_engine.services.notification_service import booking_update_dedupe_key, notify_client
from booking_engine.services.working_hours import WeeklySchedule, ensure_within_working_hours

logger = logging.getLogger(__name__)


@dataclass
class ServiceItemChange:
    service_id: int
    offering_id: int
    price_snapshot: Decimal
    duration_minutes_snapshot: int
    sort_order: int | None = None


@dataclass
class RescheduleChanges:
    scheduled_for: datetime | None = None
    duration_minutes: int | None = None
    buffer_minutes: int | None = None
    service_items: list[ServiceItemChange] | None = None
    allow_outside_working_hours: bool = False
    notify_client: bool = False

    def is_empty(self) -> bool:
        return (
            self.scheduled_for is None
            and self.duration_minutes is None
            and self.buffer_minutes is None
            and self.service_items is None
        )


@dataclass
class RescheduleResult:
    booking: Booking
    ends_at: datetime
    time_zone: str
    client_notification_id: int | None = None


def snap_minutes(value: int | float, step: int | None = None) -> int:
    """Round to the nearest multiple of ``step`` (15 minutes by default)."""
    step = step or settings.duration_snap_minutes
    return int(round(value / step) * step)


def normalize_duration(value: int | float) -> int:
    return min(max(snap_minutes(value), settings.min_duration_minutes), settings.max_duration_minutes)


def normalize_buffer(value: int | float) -> int:
    if value < 0 or value > settings.max_buffer_minutes:
        raise ValidationError(f"Buffer must be between 0 and {settings.max_buffer_minutes} minutes.")
    return snap_minutes(value)


def timezone_for_booking(booking: Booking, pro: ProfessionalProfile | None) -> str:
    """Booking location zone, else the professional's zone, else the default."""
    if is_valid_time_zone(booking.location_time_zone):
        return booking.location_time_zone.strip()
    return resolve_time_zone(pro.time_zone if pro else None, settings.default_time_zone)


def professional_lock_query(professional_id: int):
    return select(ProfessionalProfile).where(ProfessionalProfile.id == professional_id).with_for_update()


async def lock_professional(session: AsyncSession, professional_id: int) -> ProfessionalProfile:
    """Load the professional row FOR UPDATE; serializes schedule writes per professional."""
    result = await session.execute(professional_lock_query(professional_id))
    pro = result.scalar_one_or_none()
    if pro is None:
        raise NotFound("Professional not found")
    return pro


async def ensure_slot_is_free(
    session: AsyncSession,
    pro: ProfessionalProfile,
    start: datetime,
    duration_minutes: int,
    buffer_minutes: int,
    time_zone: str,
    exclude_booking_id: int | None = None,
    enforce_working_hours: bool = True,
) -> datetime:
    """Gate a booking window: working hours, then blocked time, then other bookings.

    Raises OutsideWorkingHours or SchedulingConflict. Returns the window end.
    Skipping working hours also lets the window cover blocked time.
    """
    start = ensure_utc(start)
    span = duration_minutes + buffer_minutes
    end = start + timedelta(minutes=span)

    if enforce_working_hours:
        ensure_within_working_hours(start, end, WeeklySchedule.parse(pro.working_hours), time_zone)

    widen = timedelta(minutes=2 * span)
    busy = await load_busy_intervals(
        session,
        pro.id,
        window_start=start - widen,
        window_end=end + widen,
        duration_minutes=settings.default_service_duration_minutes,
        now=start,
        exclude_booking_id=exclude_booking_id,
        include_holds=False,
        include_blocks=enforce_working_hours,
    )
    conflicts = find_conflicts(start, end, busy)
    if any(c.source == BusySource.BLOCK for c in conflicts):
        raise OutsideWorkingHours("That time is blocked off.")
    if conflicts:
        logger.info(
            "Conflict for pro %s at %s: overlaps booking %s", pro.id, start.isoformat(), conflicts[0].source_id
        )
        raise SchedulingConflict("That time overlaps another booking.")
    return end


async def _load_booking_for(session: AsyncSession, actor: Actor, booking_id: int) -> Booking:
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    owner_id = booking.professional_id if actor.is_pro else booking.client_id
    if owner_id != actor.profile_id:
        raise Forbidden("Not your booking")
    return booking


def _ensure_editable(booking: Booking) -> None:
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidState("Cancelled bookings cannot be edited.")
    if booking.status == BookingStatus.COMPLETED:
        raise InvalidState("Completed bookings are rebooked, not rescheduled.")


async def _validated_items(
    session: AsyncSession, professional_id: int, items: list[ServiceItemChange]
) -> list[ServiceItemChange]:
    if not items:
        raise ValidationError("At least one service item is required.")
    out: list[ServiceItemChange] = []
    for idx, item in enumerate(items):
        if item.price_snapshot is None or item.price_snapshot < 0:
            raise ValidationError("Service item price must be zero or more.")
        if not (
            settings.min_duration_minutes
            <= item.duration_minutes_snapshot
            <= settings.max_duration_minutes
        ):
            raise ValidationError("Service item duration is out of range.")
        result = await session.execute(
            select(ServiceOffering.id).where(
                ServiceOffering.id == item.offering_id,
                ServiceOffering.professional_id == professional_id,
                ServiceOffering.service_id == item.service_id,
                ServiceOffering.is_active.is_(True),
            )
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError(f"Offering {item.offering_id} is not an active offering of this service.")
        out.append(
            ServiceItemChange(
                service_id=item.service_id,
                offering_id=item.offering_id,
                price_snapshot=item.price_snapshot,
                duration_minutes_snapshot=normalize_duration(item.duration_minutes_snapshot),
                sort_order=item.sort_order if item.sort_order is not None else idx,
            )
        )
    return out


async def reschedule_booking(
    session: AsyncSession,
    actor: Actor,
    booking_id: int,
    changes: RescheduleChanges,
    now: datetime,
) -> RescheduleResult:
    """Validate and apply a schedule change inside the caller's transaction.

    Every check (state, input, working hours, conflicts) runs before the
    first write, so a rejected change leaves all rows untouched.
    Professionals may change start, duration, buffer and service items and
    may bypass working hours; clients may only move the start.
    """
    booking = await _load_booking_for(session, actor, booking_id)
    _ensure_editable(booking)

    if changes.is_empty():
        raise ValidationError("No changes provided.")
    if not actor.is_pro:
        if (
            changes.duration_minutes is not None
            or changes.buffer_minutes is not None
            or changes.service_items is not None
            or changes.allow_outside_working_hours
        ):
            raise ValidationError("Clients can only change the start time.")
        if changes.scheduled_for is None:
            raise ValidationError("A new start time is required.")

    pro = await lock_professional(session, booking.professional_id)
    # Re-read under the lock; a concurrent request may have cancelled it
    await session.refresh(booking)
    _ensure_editable(booking)
    tz = timezone_for_booking(booking, pro)

    new_start = None
    if changes.scheduled_for is not None:
        new_start = ensure_utc(changes.scheduled_for).replace(second=0, microsecond=0)
    new_buffer = normalize_buffer(changes.buffer_minutes) if changes.buffer_minutes is not None else None
    new_duration = normalize_duration(changes.duration_minutes) if changes.duration_minutes is not None else None

    if changes.service_items is not None:
        items = await _validated_items(session, booking.professional_id, changes.service_items)
        subtotal = sum((i.price_snapshot for i in items), Decimal("0"))
        items_duration = sum(i.duration_minutes_snapshot for i in items)
    else:
        items = None
        result = await session.execute(
            select(BookingServiceItem).where(BookingServiceItem.booking_id == booking.id)
        )
        existing_items = list(result.scalars().all())
        subtotal = (
            sum((i.price_snapshot for i in existing_items), Decimal("0"))
            if existing_items
            else booking.subtotal_snapshot
        )
        items_duration = sum(i.duration_minutes_snapshot for i in existing_items)

    final_start = new_start or ensure_utc(booking.scheduled_for).replace(second=0, microsecond=0)
    final_buffer = new_buffer if new_buffer is not None else max(booking.buffer_minutes or 0, 0)
    fallback_duration = (
        booking.total_duration_minutes
        if booking.total_duration_minutes and booking.total_duration_minutes > 0
        else settings.default_service_duration_minutes
    )
    final_duration = new_duration or (items_duration if items_duration > 0 else fallback_duration)

    bypass_hours = actor.is_pro and changes.allow_outside_working_hours
    ends_at = await ensure_slot_is_free(
        session,
        pro,
        final_start,
        final_duration,
        final_buffer,
        tz,
        exclude_booking_id=booking.id,
        enforce_working_hours=not bypass_hours,
    )
    if bypass_hours:
        logger.info("Booking %s moved outside working hours by pro %s", booking.id, actor.profile_id)

    if items is not None:
        await session.execute(delete(BookingServiceItem).where(BookingServiceItem.booking_id == booking.id))
        for item in items:
            session.add(
                BookingServiceItem(
                    booking_id=booking.id,
                    service_id=item.service_id,
                    offering_id=item.offering_id,
                    price_snapshot=item.price_snapshot,
                    duration_minutes_snapshot=item.duration_minutes_snapshot,
                    sort_order=item.sort_order,
                )
            )

    booking.scheduled_for = to_naive_utc(final_start)
    booking.buffer_minutes = final_buffer
    booking.total_duration_minutes = final_duration
    booking.subtotal_snapshot = subtotal
    session.add(booking)
    await session.flush()
    await session.refresh(booking)

    notification_id = None
    if changes.notify_client and actor.is_pro:
        notification_id = await notify_client(
            session,
            client_id=booking.client_id,
            notification_type=ClientNotificationType.BOOKING_UPDATE,
            title="Appointment updated",
            body="Your appointment details were updated.",
            dedupe_key=booking_update_dedupe_key(booking.id, final_start, final_duration, final_buffer),
            now=now,
            booking_id=booking.id,
        )

    logger.info(
        "Rescheduled booking %s to %s (%d+%d min) by %s",
        booking.id,
        final_start.isoformat(),
        final_duration,
        final_buffer,
        actor.role,
    )
    return RescheduleResult(
        booking=booking,
        ends_at=ends_at,
        time_zone=tz,
        client_notification_id=notification_id,
    )
