import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.errors import ValidationError
from booking_engine.core.timezones import ensure_utc, to_naive_utc
from booking_engine.models.aftercare import ClientNotificationType, ProductRecommendation, RebookMode
from booking_engine.services.notification_service import aftercare_dedupe_key, notify_client
from booking_engine.services.rebook_service import (
    RebookState,
    ReminderSettings,
    ensure_aftercare_eligible,
    get_or_create_summary,
    load_owned_booking,
    plan_reminders,
    reminder_labels,
    resolve_linked_booking_date,
)
from booking_engine.services.reminder_service import sync_reminders

logger = logging.getLogger(__name__)


@dataclass
class ProductInput:
    name: str
    url: str | None = None
    note: str | None = None


@dataclass
class AftercareSubmission:
    notes: str | None = None
    rebook_mode: RebookMode = RebookMode.NONE
    rebooked_for: datetime | None = None
    next_booking_id: int | None = None
    rebook_window_start: datetime | None = None
    rebook_window_end: datetime | None = None
    create_rebook_reminder: bool = False
    rebook_reminder_days_before: int | None = None
    create_product_reminder: bool = False
    product_reminder_days_after: int | None = None
    products: list[ProductInput] = field(default_factory=list)
    send_to_client: bool = False


@dataclass
class AftercareResult:
    aftercare_id: int
    booking_id: int
    state: RebookState
    reminders_created: int
    reminders_removed: int
    client_notified: bool


def _clean_products(products: list[ProductInput]) -> list[ProductInput]:
    if len(products) > settings.aftercare_max_products:
        raise ValidationError(f"At most {settings.aftercare_max_products} products can be recommended.")
    out: list[ProductInput] = []
    for p in products:
        name = (p.name or "").strip()
        if not name:
            raise ValidationError("Product name is required.")
        if len(name) > settings.product_name_max:
            raise ValidationError(f"Product name must be {settings.product_name_max} characters or fewer.")
        url = (p.url or "").strip() or None
        if url and not url.startswith(("http://", "https://")):
            raise ValidationError("Product link must be an http(s) URL.")
        note = (p.note or "").strip() or None
        if note and len(note) > settings.product_note_max:
            raise ValidationError(f"Product note must be {settings.product_note_max} characters or fewer.")
        out.append(ProductInput(name=name, url=url, note=note))
    return out


async def submit_aftercare(
    session: AsyncSession,
    professional_id: int,
    booking_id: int,
    data: AftercareSubmission,
    now: datetime,
) -> AftercareResult:
    """Save aftercare for a booking and re-derive its reminders.

    The rebook decision, reminder settings, notes and product list replace
    what was stored. Reminders are upserted by dedupe key, so resubmitting
    the same settings updates rather than duplicates them. A client
    notification is written only when ``send_to_client`` is set and the
    content differs from one already sent.
    """
    now = ensure_utc(now)
    booking = await load_owned_booking(session, booking_id, professional_id)
    ensure_aftercare_eligible(booking)

    notes = (data.notes or "").strip()[: settings.aftercare_notes_max] or None
    products = _clean_products(data.products)

    state = RebookState()
    if data.rebook_mode == RebookMode.BOOKED_NEXT_APPOINTMENT:
        when = data.rebooked_for
        if data.next_booking_id is not None:
            when = await resolve_linked_booking_date(session, booking, data.next_booking_id)
        state = state.book_next(when)
    elif data.rebook_mode == RebookMode.RECOMMENDED_WINDOW:
        state = state.recommend_window(data.rebook_window_start, data.rebook_window_end)

    reminder_settings = ReminderSettings(
        rebook_enabled=data.create_rebook_reminder,
        rebook_days_before=(
            data.rebook_reminder_days_before
            if data.rebook_reminder_days_before is not None
            else settings.rebook_reminder_days_before_default
        ),
        product_enabled=data.create_product_reminder,
        product_days_after=(
            data.product_reminder_days_after
            if data.product_reminder_days_after is not None
            else settings.product_reminder_days_after_default
        ),
    ).clamped()

    summary = await get_or_create_summary(session, booking.id)
    state.apply_to(summary)
    reminder_settings.apply_to(summary)
    summary.notes = notes
    summary.updated_at = to_naive_utc(now)
    session.add(summary)

    await session.execute(
        delete(ProductRecommendation).where(ProductRecommendation.aftercare_id == summary.id)
    )
    for idx, p in enumerate(products):
        session.add(
            ProductRecommendation(aftercare_id=summary.id, name=p.name, url=p.url, note=p.note, sort_order=idx)
        )
    await session.flush()

    client_name, service_name = await reminder_labels(session, booking)
    plans = plan_reminders(booking, state, reminder_settings, client_name, service_name)
    sync = await sync_reminders(session, booking, plans, now)

    client_notified = False
    if data.send_to_client:
        key = aftercare_dedupe_key(
            booking.id,
            state.mode.value,
            state.rebooked_for,
            state.window_start,
            state.window_end,
            notes,
            [(p.name, p.url, p.note) for p in products],
        )
        notification_id = await notify_client(
            session,
            client_id=booking.client_id,
            notification_type=ClientNotificationType.AFTERCARE,
            title="Your aftercare summary",
            body=notes,
            dedupe_key=key,
            now=now,
            booking_id=booking.id,
            aftercare_id=summary.id,
        )
        client_notified = notification_id is not None
        if client_notified:
            summary.sent_to_client_at = to_naive_utc(now)
            session.add(summary)
            await session.flush()

    logger.info(
        "Aftercare saved for booking %s: mode=%s reminders +%d -%d notified=%s",
        booking.id,
        state.mode.value,
        sync.created,
        sync.removed,
        client_notified,
    )
    return AftercareResult(
        aftercare_id=summary.id,
        booking_id=booking.id,
        state=state,
        reminders_created=sync.created,
        reminders_removed=sync.removed,
        client_notified=client_notified,
    )
