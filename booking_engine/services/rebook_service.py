"""
Aftercare rebook decision and the reminders derived from it.

A booking's rebook decision is one of three exclusive modes:

- ``NONE``: no date fields set.
- ``BOOKED_NEXT_APPOINTMENT``: only ``rebooked_for`` set.
- ``RECOMMENDED_WINDOW``: only ``window_start`` and ``window_end`` set, with
  ``window_end > window_start``.

``RebookState`` is immutable; each transition returns a new state, so a
rejected transition leaves the caller's state as it was.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.errors import Forbidden, InvalidState, NotFound, ValidationError
from booking_engine.core.timezones import ensure_utc, to_naive_utc
from booking_engine.models.aftercare import AftercareSummary, RebookMode, ReminderType
from booking_engine.models.booking import (
    Booking,
    BookingServiceItem,
    BookingSource,
    BookingStatus,
    SessionStep,
)
from booking_engine.models.professional import ClientProfile, Service
from booking_engine.services.reminder_service import ReminderPlan, sync_reminders
from booking_engine.services.reschedule_service import (
    ensure_slot_is_free,
    lock_professional,
    timezone_for_booking,
)

logger = logging.getLogger(__name__)

# Session steps from which an ACCEPTED booking may receive aftercare
AFTERCARE_STEPS = (SessionStep.AFTER_PHOTOS, SessionStep.DONE)


class RebookAction(str, Enum):
    BOOK = "BOOK"
    RECOMMEND_WINDOW = "RECOMMEND_WINDOW"
    CLEAR = "CLEAR"


@dataclass(frozen=True)
class RebookState:
    mode: RebookMode = RebookMode.NONE
    rebooked_for: datetime | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None

    @classmethod
    def from_summary(cls, summary: AftercareSummary | None) -> "RebookState":
        if summary is None:
            return cls()
        return cls(
            mode=summary.rebook_mode,
            rebooked_for=ensure_utc(summary.rebooked_for) if summary.rebooked_for else None,
            window_start=ensure_utc(summary.rebook_window_start) if summary.rebook_window_start else None,
            window_end=ensure_utc(summary.rebook_window_end) if summary.rebook_window_end else None,
        )

    def clear(self) -> "RebookState":
        return RebookState()

    def book_next(self, when: datetime | None) -> "RebookState":
        if when is None:
            raise ValidationError("A booked next appointment needs a date.")
        return RebookState(mode=RebookMode.BOOKED_NEXT_APPOINTMENT, rebooked_for=ensure_utc(when))

    def recommend_window(self, start: datetime | None, end: datetime | None) -> "RebookState":
        if start is None or end is None:
            raise ValidationError("A recommended window needs a start and an end.")
        start, end = ensure_utc(start), ensure_utc(end)
        if end <= start:
            raise ValidationError("Recommended window end must be after start.")
        return RebookState(mode=RebookMode.RECOMMENDED_WINDOW, window_start=start, window_end=end)

    def validate(self) -> "RebookState":
        """Raise ValidationError unless exactly the active mode's fields are set."""
        has_date = self.rebooked_for is not None
        has_window = self.window_start is not None or self.window_end is not None
        if self.mode == RebookMode.NONE:
            ok = not has_date and not has_window
        elif self.mode == RebookMode.BOOKED_NEXT_APPOINTMENT:
            ok = has_date and not has_window
        else:
            ok = (
                not has_date
                and self.window_start is not None
                and self.window_end is not None
                and self.window_end > self.window_start
            )
        if not ok:
            raise ValidationError(f"Inconsistent rebook state for mode {self.mode.value}.")
        return self

    @property
    def anchor(self) -> datetime | None:
        """Date a REBOOK reminder counts back from."""
        return self.window_start or self.rebooked_for

    def apply_to(self, summary: AftercareSummary) -> None:
        self.validate()
        summary.rebook_mode = self.mode
        summary.rebooked_for = to_naive_utc(self.rebooked_for) if self.rebooked_for else None
        summary.rebook_window_start = to_naive_utc(self.window_start) if self.window_start else None
        summary.rebook_window_end = to_naive_utc(self.window_end) if self.window_end else None


@dataclass(frozen=True)
class ReminderSettings:
    rebook_enabled: bool = False
    rebook_days_before: int = 2
    product_enabled: bool = False
    product_days_after: int = 7

    @classmethod
    def from_summary(cls, summary: AftercareSummary | None) -> "ReminderSettings":
        if summary is None:
            return cls()
        return cls(
            rebook_enabled=summary.rebook_reminder_enabled,
            rebook_days_before=summary.rebook_reminder_days_before,
            product_enabled=summary.product_reminder_enabled,
            product_days_after=summary.product_reminder_days_after,
        )

    def clamped(self) -> "ReminderSettings":
        return replace(
            self,
            rebook_days_before=min(max(self.rebook_days_before, 1), settings.rebook_reminder_days_before_max),
            product_days_after=min(max(self.product_days_after, 1), settings.product_reminder_days_after_max),
        )

    def apply_to(self, summary: AftercareSummary) -> None:
        summary.rebook_reminder_enabled = self.rebook_enabled
        summary.rebook_reminder_days_before = self.rebook_days_before
        summary.product_reminder_enabled = self.product_enabled
        summary.product_reminder_days_after = self.product_days_after


def reminder_dedupe_key(booking_id: int, reminder_type: ReminderType) -> str:
    return f"aftercare:{booking_id}:{reminder_type.value}"


def plan_reminders(
    booking: Booking,
    state: RebookState,
    reminder_settings: ReminderSettings,
    client_name: str = "Client",
    service_name: str | None = None,
) -> list[ReminderPlan]:
    """The REBOOK and PRODUCT_FOLLOWUP reminders a booking should have."""
    plans: list[ReminderPlan] = []

    rebook_key = reminder_dedupe_key(booking.id, ReminderType.REBOOK)
    anchor = state.anchor
    if reminder_settings.rebook_enabled and state.mode != RebookMode.NONE and anchor is not None:
        if state.mode == RebookMode.RECOMMENDED_WINDOW:
            body = f"Recommended window: {state.window_start.isoformat()} to {state.window_end.isoformat()}"
        else:
            body = f"Target date: {anchor.isoformat()}"
        plans.append(
            ReminderPlan(
                type=ReminderType.REBOOK,
                dedupe_key=rebook_key,
                due_at=anchor - timedelta(days=reminder_settings.rebook_days_before),
                title=f"Rebook: {client_name}",
                body=body,
            )
        )
    else:
        plans.append(ReminderPlan(type=ReminderType.REBOOK, dedupe_key=rebook_key))

    product_key = reminder_dedupe_key(booking.id, ReminderType.PRODUCT_FOLLOWUP)
    if reminder_settings.product_enabled:
        base = ensure_utc(booking.finished_at or booking.scheduled_for)
        plans.append(
            ReminderPlan(
                type=ReminderType.PRODUCT_FOLLOWUP,
                dedupe_key=product_key,
                due_at=base + timedelta(days=reminder_settings.product_days_after),
                title=f"Product follow-up: {client_name}",
                body=f"Check in after {service_name}." if service_name else "Check in after the appointment.",
            )
        )
    else:
        plans.append(ReminderPlan(type=ReminderType.PRODUCT_FOLLOWUP, dedupe_key=product_key))
    return plans


def ensure_aftercare_eligible(booking: Booking) -> None:
    """Raise InvalidState unless the booking may receive aftercare or rebook writes."""
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidState("Cancelled bookings cannot receive aftercare.")
    if booking.status == BookingStatus.PENDING:
        raise InvalidState("Pending bookings cannot receive aftercare.")
    if booking.status == BookingStatus.ACCEPTED and booking.session_step not in AFTERCARE_STEPS:
        raise InvalidState("Finish the session before sending aftercare.")


async def load_owned_booking(
    session: AsyncSession, booking_id: int, professional_id: int, for_update: bool = False
) -> Booking:
    q = select(Booking).where(Booking.id == booking_id)
    if for_update:
        q = q.with_for_update()
    result = await session.execute(q)
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking not found")
    if booking.professional_id != professional_id:
        raise Forbidden("Not your booking")
    return booking


async def resolve_linked_booking_date(
    session: AsyncSession, booking: Booking, next_booking_id: int
) -> datetime:
    """Start of a follow-up booking for the same client and professional."""
    if next_booking_id == booking.id:
        raise ValidationError("A booking cannot be its own follow-up.")
    nxt = await session.get(Booking, next_booking_id)
    if nxt is None:
        raise NotFound("Follow-up booking not found")
    if nxt.client_id != booking.client_id or nxt.professional_id != booking.professional_id:
        raise ValidationError("Follow-up booking belongs to a different client or professional.")
    if nxt.status == BookingStatus.CANCELLED:
        raise ValidationError("Follow-up booking is cancelled.")
    return ensure_utc(nxt.scheduled_for)


async def find_summary(session: AsyncSession, booking_id: int) -> AftercareSummary | None:
    result = await session.execute(
        select(AftercareSummary).where(AftercareSummary.booking_id == booking_id)
    )
    return result.scalar_one_or_none()


async def get_or_create_summary(session: AsyncSession, booking_id: int) -> AftercareSummary:
    summary = await find_summary(session, booking_id)
    if summary is None:
        summary = AftercareSummary(
            booking_id=booking_id,
            rebook_reminder_days_before=settings.rebook_reminder_days_before_default,
            product_reminder_days_after=settings.product_reminder_days_after_default,
        )
        session.add(summary)
        await session.flush()
    return summary


async def reminder_labels(session: AsyncSession, booking: Booking) -> tuple[str, str | None]:
    """(client display name, service name) used in reminder text."""
    client = await session.get(ClientProfile, booking.client_id)
    service = await session.get(Service, booking.service_id) if booking.service_id else None
    return (client.display_name if client else "Client", service.name if service else None)


@dataclass
class RebookResult:
    booking_id: int
    aftercare_id: int
    state: RebookState
    next_booking_id: int | None
    reminders_created: int
    reminders_removed: int


async def _create_follow_up_booking(
    session: AsyncSession, booking: Booking, start: datetime
) -> Booking:
    result = await session.execute(
        select(BookingServiceItem)
        .where(BookingServiceItem.booking_id == booking.id)
        .order_by(BookingServiceItem.sort_order, BookingServiceItem.id)
    )
    items = list(result.scalars().all())
    duration = (
        sum(i.duration_minutes_snapshot for i in items)
        if items
        else booking.total_duration_minutes or settings.default_service_duration_minutes
    )
    buffer = booking.buffer_minutes or 0

    pro = await lock_professional(session, booking.professional_id)
    tz = timezone_for_booking(booking, pro)
    await ensure_slot_is_free(
        session,
        pro,
        start,
        duration,
        buffer,
        tz,
        exclude_booking_id=None,
        enforce_working_hours=True,
    )

    follow_up = Booking(
        professional_id=booking.professional_id,
        client_id=booking.client_id,
        service_id=booking.service_id,
        offering_id=booking.offering_id,
        scheduled_for=to_naive_utc(start),
        total_duration_minutes=duration,
        buffer_minutes=buffer,
        subtotal_snapshot=booking.subtotal_snapshot,
        status=BookingStatus.ACCEPTED,
        location_type=booking.location_type,
        location_time_zone=booking.location_time_zone,
        source=BookingSource.AFTERCARE,
        rebook_of_booking_id=booking.id,
    )
    session.add(follow_up)
    await session.flush()
    for item in items:
        session.add(
            BookingServiceItem(
                booking_id=follow_up.id,
                service_id=item.service_id,
                offering_id=item.offering_id,
                price_snapshot=item.price_snapshot,
                duration_minutes_snapshot=item.duration_minutes_snapshot,
                sort_order=item.sort_order,
            )
        )
    await session.flush()
    logger.info("Created follow-up booking %s for booking %s", follow_up.id, booking.id)
    return follow_up


async def apply_rebook(
    session: AsyncSession,
    professional_id: int,
    booking_id: int,
    action: RebookAction,
    now: datetime,
    rebooked_for: datetime | None = None,
    window_start: datetime | None = None,
    window_end: datetime | None = None,
) -> RebookResult:
    """Rebook mutation on a completed booking.

    BOOK creates an accepted follow-up booking at ``rebooked_for`` (gated by
    working hours and conflicts); RECOMMEND_WINDOW stores a date range;
    CLEAR resets to NONE. Reminders are re-derived from the stored settings.
    """
    booking = await load_owned_booking(session, booking_id, professional_id)
    if booking.status != BookingStatus.COMPLETED:
        raise InvalidState("Only completed bookings can be rebooked.")

    current = RebookState.from_summary(await find_summary(session, booking.id))
    now = ensure_utc(now)

    next_booking_id: int | None = None
    if action == RebookAction.CLEAR:
        new_state = current.clear()
    elif action == RebookAction.RECOMMEND_WINDOW:
        new_state = current.recommend_window(window_start, window_end)
    else:
        if rebooked_for is None:
            raise ValidationError("BOOK needs a date.")
        start = ensure_utc(rebooked_for)
        if start < now - timedelta(seconds=settings.rebook_past_tolerance_seconds):
            raise ValidationError("Next appointment must be in the future.")
        new_state = current.book_next(start)
        follow_up = await _create_follow_up_booking(session, booking, start)
        next_booking_id = follow_up.id

    summary = await get_or_create_summary(session, booking.id)
    new_state.apply_to(summary)
    summary.updated_at = to_naive_utc(now)
    session.add(summary)
    await session.flush()

    client_name, service_name = await reminder_labels(session, booking)
    plans = plan_reminders(
        booking, new_state, ReminderSettings.from_summary(summary), client_name, service_name
    )
    sync = await sync_reminders(session, booking, plans, now)
    logger.info(
        "Rebook %s on booking %s: mode=%s", action.value, booking.id, new_state.mode.value
    )
    return RebookResult(
        booking_id=booking.id,
        aftercare_id=summary.id,
        state=new_state,
        next_booking_id=next_booking_id,
        reminders_created=sync.created,
        reminders_removed=sync.removed,
    )
