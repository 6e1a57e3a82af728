from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_now, get_session, require_client, require_pro
from booking_engine.api.schemas.booking import (
    BookingScheduleOut,
    ClientRescheduleRequest,
    ProRescheduleRequest,
    RebookRequest,
    RebookResponse,
    RebookStateOut,
)
from booking_engine.core.security import Actor
from booking_engine.core.timezones import ensure_utc
from booking_engine.services.rebook_service import RebookState, apply_rebook
from booking_engine.services.reschedule_service import (
    RescheduleChanges,
    RescheduleResult,
    ServiceItemChange,
    reschedule_booking,
)

router = APIRouter(tags=["bookings"])


def _money(value: Decimal | None) -> str | None:
    return None if value is None else f"{Decimal(value):.2f}"


def _schedule_out(r: RescheduleResult) -> BookingScheduleOut:
    b = r.booking
    return BookingScheduleOut(
        id=b.id,
        status=b.status,
        scheduled_for=ensure_utc(b.scheduled_for),
        ends_at=r.ends_at,
        duration_minutes=b.total_duration_minutes,
        buffer_minutes=b.buffer_minutes,
        subtotal=_money(b.subtotal_snapshot),
        time_zone=r.time_zone,
        client_notified=r.client_notification_id is not None,
    )


def rebook_state_out(state: RebookState) -> RebookStateOut:
    return RebookStateOut(
        mode=state.mode,
        rebooked_for=state.rebooked_for,
        rebook_window_start=state.window_start,
        rebook_window_end=state.window_end,
    )


@router.patch("/pro/bookings/{booking_id}", response_model=BookingScheduleOut)
async def pro_update_booking(
    booking_id: int,
    body: ProRescheduleRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
    now: datetime = Depends(get_now),
) -> BookingScheduleOut:
    """Reschedule, resize or re-itemize a booking. Professionals may bypass working hours."""
    changes = RescheduleChanges(
        scheduled_for=body.scheduled_for,
        duration_minutes=body.duration_minutes,
        buffer_minutes=body.buffer_minutes,
        service_items=(
            [ServiceItemChange(**item.model_dump()) for item in body.service_items]
            if body.service_items is not None
            else None
        ),
        allow_outside_working_hours=body.allow_outside_working_hours,
        notify_client=body.notify_client,
    )
    result = await reschedule_booking(session, actor, booking_id, changes, now)
    return _schedule_out(result)


@router.post("/client/bookings/{booking_id}/reschedule", response_model=BookingScheduleOut)
async def client_reschedule_booking(
    booking_id: int,
    body: ClientRescheduleRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_client),
    now: datetime = Depends(get_now),
) -> BookingScheduleOut:
    result = await reschedule_booking(
        session, actor, booking_id, RescheduleChanges(scheduled_for=body.scheduled_for), now
    )
    return _schedule_out(result)


@router.post("/pro/bookings/{booking_id}/rebook", response_model=RebookResponse)
async def pro_rebook(
    booking_id: int,
    body: RebookRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
    now: datetime = Depends(get_now),
) -> RebookResponse:
    result = await apply_rebook(
        session,
        actor.profile_id,
        booking_id,
        body.mode,
        now,
        rebooked_for=body.rebooked_for,
        window_start=body.window_start,
        window_end=body.window_end,
    )
    return RebookResponse(
        booking_id=result.booking_id,
        aftercare_id=result.aftercare_id,
        rebook=rebook_state_out(result.state),
        next_booking_id=result.next_booking_id,
        reminders_created=result.reminders_created,
        reminders_removed=result.reminders_removed,
    )
