"""
Calendar blocks: time a professional takes off their own calendar.

Blocks are busy time for availability and for booking writes. Blocks of one
professional never overlap each other.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.errors import NotFound, SchedulingConflict, ValidationError
from booking_engine.core.timezones import ensure_utc, to_naive_utc
from booking_engine.models.calendar import CalendarBlock
from booking_engine.services.reschedule_service import lock_professional

logger = logging.getLogger(__name__)

LIST_LOOKBACK = timedelta(days=7)
LIST_LOOKAHEAD = timedelta(days=60)
LIST_MAX_ROWS = 1000


def validate_block_window(starts_at: datetime, ends_at: datetime) -> tuple[datetime, datetime]:
    """Aware UTC (start, end) of a valid block, or ValidationError."""
    starts_at, ends_at = ensure_utc(starts_at), ensure_utc(ends_at)
    if ends_at <= starts_at:
        raise ValidationError("End must be after start.")
    minutes = round((ends_at - starts_at).total_seconds() / 60)
    if not settings.calendar_block_min_minutes <= minutes <= settings.calendar_block_max_minutes:
        raise ValidationError(
            f"Block must be between {settings.calendar_block_min_minutes} minutes "
            f"and {settings.calendar_block_max_minutes // 60} hours."
        )
    return starts_at, ends_at


def _clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    return note.strip() or None


async def _get_own_block(session: AsyncSession, professional_id: int, block_id: int) -> CalendarBlock:
    block = await session.get(CalendarBlock, block_id)
    if block is None or block.professional_id != professional_id:
        raise NotFound("Block not found.")
    return block


async def _ensure_no_overlap(
    session: AsyncSession,
    professional_id: int,
    starts_at: datetime,
    ends_at: datetime,
    exclude_block_id: int | None = None,
) -> None:
    q = select(CalendarBlock.id).where(
        CalendarBlock.professional_id == professional_id,
        CalendarBlock.starts_at < to_naive_utc(ends_at),
        CalendarBlock.ends_at > to_naive_utc(starts_at),
    )
    if exclude_block_id is not None:
        q = q.where(CalendarBlock.id != exclude_block_id)
    if (await session.execute(q.limit(1))).first() is not None:
        raise SchedulingConflict("That time overlaps an existing block.")


async def list_blocks(
    session: AsyncSession,
    professional_id: int,
    now: datetime,
    window_start: datetime | None = None,
    window_end: datetime | None = None,
) -> list[CalendarBlock]:
    """Blocks touching the window, oldest first. Defaults to a week back and 60 days ahead."""
    now = ensure_utc(now)
    window_start = ensure_utc(window_start) if window_start else now - LIST_LOOKBACK
    window_end = ensure_utc(window_end) if window_end else now + LIST_LOOKAHEAD
    result = await session.execute(
        select(CalendarBlock)
        .where(
            CalendarBlock.professional_id == professional_id,
            CalendarBlock.starts_at <= to_naive_utc(window_end),
            CalendarBlock.ends_at >= to_naive_utc(window_start),
        )
        .order_by(CalendarBlock.starts_at)
        .limit(LIST_MAX_ROWS)
    )
    return list(result.scalars().all())


async def get_block(session: AsyncSession, professional_id: int, block_id: int) -> CalendarBlock:
    return await _get_own_block(session, professional_id, block_id)


async def create_block(
    session: AsyncSession,
    professional_id: int,
    starts_at: datetime,
    ends_at: datetime,
    note: str | None = None,
) -> CalendarBlock:
    starts_at, ends_at = validate_block_window(starts_at, ends_at)
    await lock_professional(session, professional_id)
    await _ensure_no_overlap(session, professional_id, starts_at, ends_at)

    block = CalendarBlock(
        professional_id=professional_id,
        starts_at=to_naive_utc(starts_at),
        ends_at=to_naive_utc(ends_at),
        note=_clean_note(note),
    )
    session.add(block)
    await session.flush()
    logger.info("Pro %s blocked %s - %s", professional_id, starts_at.isoformat(), ends_at.isoformat())
    return block


async def update_block(
    session: AsyncSession,
    professional_id: int,
    block_id: int,
    starts_at: datetime,
    ends_at: datetime,
    note: str | None = None,
) -> CalendarBlock:
    """Move or resize a block; the note is replaced, and cleared when omitted."""
    starts_at, ends_at = validate_block_window(starts_at, ends_at)
    await lock_professional(session, professional_id)
    block = await _get_own_block(session, professional_id, block_id)
    await _ensure_no_overlap(session, professional_id, starts_at, ends_at, exclude_block_id=block.id)

    block.starts_at = to_naive_utc(starts_at)
    block.ends_at = to_naive_utc(ends_at)
    block.note = _clean_note(note)
    session.add(block)
    await session.flush()
    return block


async def delete_block(session: AsyncSession, professional_id: int, block_id: int) -> None:
    block = await _get_own_block(session, professional_id, block_id)
    await session.delete(block)
    await session.flush()
    logger.info("Pro %s removed block %s", professional_id, block_id)
