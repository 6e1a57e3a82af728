import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, literal_column, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.timezones import ensure_utc, to_naive_utc
from booking_engine.models.aftercare import Reminder, ReminderType
from booking_engine.models.booking import Booking

logger = logging.getLogger(__name__)

# Columns refreshed on conflict; completed_at and created_at are left alone
_UPSERT_COLUMNS = ("professional_id", "client_id", "booking_id", "type", "title", "body", "due_at")


@dataclass(frozen=True)
class ReminderPlan:
    """Desired state of one derived reminder; ``due_at=None`` means remove the open one."""

    type: ReminderType
    dedupe_key: str
    due_at: datetime | None = None
    title: str = ""
    body: str | None = None


@dataclass
class ReminderSyncResult:
    created: int = 0
    updated: int = 0
    removed: int = 0
    reminder_ids: dict[ReminderType, int] | None = None


def dialect_insert(session: AsyncSession):
    """``insert`` construct with ON CONFLICT support for the session's database."""
    name = session.bind.dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Upsert not supported on {name}")


def inserted_flag(dialect_name: str):
    """RETURNING expression that is true when the upsert inserted a new row.

    PostgreSQL leaves xmax at 0 on a freshly inserted tuple. SQLite has no
    equivalent, so callers there fall back to a lookup; SQLite allows a
    single writer, so the lookup cannot race the upsert.
    """
    if dialect_name == "postgresql":
        return literal_column("(xmax = 0)")
    return None


async def upsert_reminder(
    session: AsyncSession, booking: Booking, plan: ReminderPlan, now: datetime
) -> tuple[int, bool]:
    """Insert or update the reminder for ``plan.dedupe_key`` with a single upsert.

    ``completed_at`` is never written, so a reminder the professional already
    completed stays completed. Returns (reminder id, created).
    """
    insert = dialect_insert(session)
    inserted = inserted_flag(session.bind.dialect.name)
    if inserted is None:
        existing = await session.execute(select(Reminder.id).where(Reminder.dedupe_key == plan.dedupe_key))
        inserted = literal_column("1" if existing.scalar_one_or_none() is None else "0")
    stmt = insert(Reminder).values(
        dedupe_key=plan.dedupe_key,
        professional_id=booking.professional_id,
        client_id=booking.client_id,
        booking_id=booking.id,
        type=plan.type,
        title=plan.title,
        body=plan.body,
        due_at=to_naive_utc(plan.due_at),
        created_at=to_naive_utc(ensure_utc(now)),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Reminder.dedupe_key],
        set_={col: stmt.excluded[col] for col in _UPSERT_COLUMNS},
    ).returning(Reminder.id, inserted)
    reminder_id, created = (await session.execute(stmt)).one()
    return reminder_id, bool(created)


async def delete_open_reminder(session: AsyncSession, dedupe_key: str) -> int:
    """Delete the reminder for ``dedupe_key`` unless it was already completed."""
    result = await session.execute(
        delete(Reminder).where(Reminder.dedupe_key == dedupe_key, Reminder.completed_at.is_(None))
    )
    return result.rowcount or 0


async def sync_reminders(
    session: AsyncSession, booking: Booking, plans: list[ReminderPlan], now: datetime
) -> ReminderSyncResult:
    out = ReminderSyncResult(reminder_ids={})
    for plan in plans:
        if plan.due_at is None:
            removed = await delete_open_reminder(session, plan.dedupe_key)
            out.removed += removed
            continue
        reminder_id, created = await upsert_reminder(session, booking, plan, now)
        out.reminder_ids[plan.type] = reminder_id
        if created:
            out.created += 1
        else:
            out.updated += 1
    logger.debug(
        "Reminders for booking %s: created=%d updated=%d removed=%d",
        booking.id,
        out.created,
        out.updated,
        out.removed,
    )
    return out
