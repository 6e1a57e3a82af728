from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_now, get_session, require_pro
from booking_engine.api.schemas.calendar import CalendarBlockIn, CalendarBlockList, CalendarBlockOut
from booking_engine.core.security import Actor
from booking_engine.core.timezones import ensure_utc
from booking_engine.models.calendar import CalendarBlock
from booking_engine.services.calendar_block_service import (
    create_block,
    delete_block,
    get_block,
    list_blocks,
    update_block,
)

router = APIRouter(prefix="/pro/calendar/blocks", tags=["calendar"])


def _to_out(block: CalendarBlock) -> CalendarBlockOut:
    return CalendarBlockOut(
        id=block.id,
        starts_at=ensure_utc(block.starts_at),
        ends_at=ensure_utc(block.ends_at),
        note=block.note,
    )


@router.get("", response_model=CalendarBlockList)
async def pro_list_blocks(
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
    now: datetime = Depends(get_now),
) -> CalendarBlockList:
    """Blocked time between ``from`` and ``to`` (default: a week back to 60 days ahead)."""
    blocks = await list_blocks(session, actor.profile_id, now, start, end)
    return CalendarBlockList(blocks=[_to_out(b) for b in blocks])


@router.post("", response_model=CalendarBlockOut, status_code=status.HTTP_201_CREATED)
async def pro_create_block(
    body: CalendarBlockIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
) -> CalendarBlockOut:
    block = await create_block(session, actor.profile_id, body.starts_at, body.ends_at, body.note)
    return _to_out(block)


@router.get("/{block_id}", response_model=CalendarBlockOut)
async def pro_get_block(
    block_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
) -> CalendarBlockOut:
    return _to_out(await get_block(session, actor.profile_id, block_id))


@router.patch("/{block_id}", response_model=CalendarBlockOut)
async def pro_update_block(
    block_id: int,
    body: CalendarBlockIn,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
) -> CalendarBlockOut:
    block = await update_block(session, actor.profile_id, block_id, body.starts_at, body.ends_at, body.note)
    return _to_out(block)


@router.delete("/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def pro_delete_block(
    block_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_pro),
) -> None:
    await delete_block(session, actor.profile_id, block_id)
