import hashlib
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.timezones import ensure_utc, to_naive_utc
from booking_engine.models.aftercare import ClientNotification, ClientNotificationType
from booking_engine.services.reminder_service import dialect_insert

logger = logging.getLogger(__name__)


def booking_update_dedupe_key(booking_id: int, start: datetime, duration: int, buffer: int) -> str:
    return f"BOOKING_UPDATED:{booking_id}:{ensure_utc(start).isoformat()}:{duration}:{buffer}"


def aftercare_dedupe_key(booking_id: int, *parts: object) -> str:
    """Key changes whenever the content sent to the client changes."""
    digest = hashlib.sha256("|".join("" if p is None else str(p) for p in parts).encode()).hexdigest()
    return f"AFTERCARE:{booking_id}:{digest[:16]}"


async def notify_client(
    session: AsyncSession,
    *,
    client_id: int,
    notification_type: ClientNotificationType,
    title: str,
    body: str | None,
    dedupe_key: str,
    now: datetime,
    booking_id: int | None = None,
    aftercare_id: int | None = None,
) -> int | None:
    """Insert a client notification unless one with ``dedupe_key`` exists.

    Returns the new notification id, or None when it was a duplicate.
    Delivery (push, e-mail) is handled elsewhere from these rows.
    """
    insert = dialect_insert(session)
    stmt = (
        insert(ClientNotification)
        .values(
            dedupe_key=dedupe_key,
            client_id=client_id,
            type=notification_type,
            title=title,
            body=body,
            booking_id=booking_id,
            aftercare_id=aftercare_id,
            created_at=to_naive_utc(ensure_utc(now)),
        )
        .on_conflict_do_nothing(index_elements=[ClientNotification.dedupe_key])
        .returning(ClientNotification.id)
    )
    notification_id = (await session.execute(stmt)).scalar_one_or_none()
    if notification_id is None:
        logger.debug("Client notification %s already exists", dedupe_key)
    else:
        logger.info(
            "Queued %s notification %s for client %s", notification_type.value, notification_id, client_id
        )
    return notification_id
