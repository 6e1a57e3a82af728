from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_now, get_session, require_pro
from booking_engine.api.routes.bookings import rebook_state_out
from booking_engine.api.schemas.aftercare import AftercareRequest, AftercareResponse
from booking_engine.core.security import Actor
from booking_engine.services.aftercare_service import AftercareSubmission, ProductInput, submit_aftercare

router = APIRouter(prefix="/pro/bookings", tags=["aftercare"])


@router.post("/{booking_id}/aftercare", response_model=AftercareResponse)
async def pro_submit_aftercare(
    booking_id: int,
    body: AftercareRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
    now: datetime = Depends(get_now),
) -> AftercareResponse:
    """Save aftercare notes, rebook decision, reminders and product picks.
    The client is notified only when ``send_to_client`` is set."""
    data = AftercareSubmission(
        notes=body.notes,
        rebook_mode=body.rebook_mode,
        rebooked_for=body.rebooked_for,
        next_booking_id=body.next_booking_id,
        rebook_window_start=body.rebook_window_start,
        rebook_window_end=body.rebook_window_end,
        create_rebook_reminder=body.create_rebook_reminder,
        rebook_reminder_days_before=body.rebook_reminder_days_before,
        create_product_reminder=body.create_product_reminder,
        product_reminder_days_after=body.product_reminder_days_after,
        products=[ProductInput(name=p.name, url=p.url, note=p.note) for p in body.recommended_products],
        send_to_client=body.send_to_client,
    )
    result = await submit_aftercare(session, actor.profile_id, booking_id, data, now)
    return AftercareResponse(
        aftercare_id=result.aftercare_id,
        booking_id=result.booking_id,
        rebook=rebook_state_out(result.state),
        reminders_created=result.reminders_created,
        reminders_removed=result.reminders_removed,
        client_notified=result.client_notified,
    )
