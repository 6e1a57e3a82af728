"""
Busy time for a professional: active bookings, unexpired holds and
calendar blocks.

Intervals are half-open ``[start, end)`` aware UTC pairs tagged with their
source. Overlapping intervals are not merged.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.timezones import ensure_utc, to_naive_utc
from booking_engine.models.booking import Booking, BookingHold, BookingStatus
from booking_engine.models.calendar import CalendarBlock


class BusySource(str, Enum):
    BOOKING = "BOOKING"
    HOLD = "HOLD"
    BLOCK = "BLOCK"


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
    source: BusySource
    source_id: int | None = None


def interval_for_booking(booking: Booking, fallback_duration: int) -> BusyInterval:
    """Booking blocks its duration snapshot (or the fallback) plus its buffer."""
    start = ensure_utc(booking.scheduled_for)
    duration = booking.total_duration_minutes or fallback_duration
    end = start + timedelta(minutes=duration + max(booking.buffer_minutes or 0, 0))
    return BusyInterval(start, end, BusySource.BOOKING, booking.id)


def interval_for_hold(hold: BookingHold, duration: int) -> BusyInterval:
    """A hold only records a start, so it blocks for the duration being evaluated."""
    start = ensure_utc(hold.scheduled_for)
    return BusyInterval(start, start + timedelta(minutes=duration), BusySource.HOLD, hold.id)


def interval_for_block(block: CalendarBlock) -> BusyInterval:
    return BusyInterval(
        ensure_utc(block.starts_at), ensure_utc(block.ends_at), BusySource.BLOCK, block.id
    )


def _max_booking_span() -> timedelta:
    return timedelta(minutes=settings.max_duration_minutes + settings.max_buffer_minutes)


async def load_busy_intervals(
    session: AsyncSession,
    professional_id: int,
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int,
    now: datetime,
    exclude_booking_id: int | None = None,
    include_holds: bool = True,
    include_blocks: bool = True,
) -> list[BusyInterval]:
    """Busy intervals overlapping [window_start, window_end): bookings, then holds, then blocks."""
    window_start = ensure_utc(window_start)
    window_end = ensure_utc(window_end)

    # Look back far enough to catch a booking that started before the window
    q = select(Booking).where(
        Booking.professional_id == professional_id,
        Booking.status != BookingStatus.CANCELLED,
        Booking.scheduled_for >= to_naive_utc(window_start - _max_booking_span()),
        Booking.scheduled_for < to_naive_utc(window_end),
    )
    if exclude_booking_id is not None:
        q = q.where(Booking.id != exclude_booking_id)
    result = await session.execute(q.order_by(Booking.scheduled_for))
    out = [
        bi
        for bi in (interval_for_booking(b, duration_minutes) for b in result.scalars().all())
        if bi.end > window_start
    ]

    if include_holds:
        result = await session.execute(
            select(BookingHold)
            .where(
                BookingHold.professional_id == professional_id,
                BookingHold.expires_at > to_naive_utc(now),
                BookingHold.scheduled_for >= to_naive_utc(window_start - timedelta(minutes=duration_minutes)),
                BookingHold.scheduled_for < to_naive_utc(window_end),
            )
            .order_by(BookingHold.scheduled_for)
        )
        out.extend(
            bi
            for bi in (interval_for_hold(h, duration_minutes) for h in result.scalars().all())
            if bi.end > window_start
        )

    if include_blocks:
        result = await session.execute(
            select(CalendarBlock)
            .where(
                CalendarBlock.professional_id == professional_id,
                CalendarBlock.starts_at < to_naive_utc(window_end),
                CalendarBlock.ends_at > to_naive_utc(window_start),
            )
            .order_by(CalendarBlock.starts_at)
        )
        out.extend(interval_for_block(b) for b in result.scalars().all())
    return out
