from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_now, get_session
from booking_engine.api.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySummaryResponse,
    AvailableDayOut,
    DayAvailabilityResponse,
    ProAvailabilityOut,
)
from booking_engine.models.professional import LocationType
from booking_engine.services.slot_service import (
    AvailabilityQuery,
    ProAvailability,
    get_availability,
    get_availability_summary,
    get_day_availability,
)

router = APIRouter(prefix="/availability", tags=["availability"])


def _money(value: Decimal | None) -> str | None:
    return None if value is None else f"{Decimal(value):.2f}"


def _to_out(a: ProAvailability) -> ProAvailabilityOut:
    pro = a.professional
    return ProAvailabilityOut(
        id=pro.id,
        business_name=pro.business_name,
        avatar_url=pro.avatar_url,
        location=pro.location or pro.city,
        offering_id=a.offering_id,
        location_type=a.location_type,
        price=_money(a.price),
        duration_minutes=a.duration_minutes,
        time_zone=a.time_zone,
        slots=a.slots,
        is_primary=a.is_primary,
    )


@router.get("", response_model=AvailabilityResponse)
async def availability(
    professional_id: int = Query(...),
    service_id: int | None = Query(None),
    offering_id: int | None = Query(None),
    location_type: LocationType | None = Query(None),
    limit: int | None = Query(None),
    other_pros_limit: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> AvailabilityResponse:
    """Next bookable slots (UTC) for a professional, plus other professionals
    offering the same service when ``service_id`` is given."""
    result = await get_availability(
        session,
        AvailabilityQuery(
            professional_id=professional_id,
            service_id=service_id,
            offering_id=offering_id,
            location_type=location_type,
            limit=limit,
            other_pros_limit=other_pros_limit,
        ),
        now,
    )
    return AvailabilityResponse(
        service_id=result.service_id,
        time_zone=result.time_zone,
        primary_pro=_to_out(result.primary_pro),
        other_pros=[_to_out(a) for a in result.other_pros],
    )


@router.get("/day", response_model=DayAvailabilityResponse)
async def day_availability(
    professional_id: int = Query(...),
    day: date = Query(..., alias="date"),
    service_id: int | None = Query(None),
    offering_id: int | None = Query(None),
    location_type: LocationType | None = Query(None),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> DayAvailabilityResponse:
    """Every free slot on one day in the professional's zone."""
    result = await get_day_availability(
        session,
        AvailabilityQuery(
            professional_id=professional_id,
            service_id=service_id,
            offering_id=offering_id,
            location_type=location_type,
        ),
        day,
        now,
    )
    terms = result.terms
    return DayAvailabilityResponse(
        professional_id=result.professional_id,
        day=result.day,
        time_zone=terms.time_zone,
        day_start_utc=result.day_start,
        day_end_exclusive_utc=result.day_end,
        offering_id=terms.offering_id,
        location_type=terms.location_type,
        price=_money(terms.price),
        duration_minutes=terms.slot_minutes,
        slots=result.slots,
    )


@router.get("/summary", response_model=AvailabilitySummaryResponse)
async def availability_summary(
    professional_id: int = Query(...),
    service_id: int | None = Query(None),
    offering_id: int | None = Query(None),
    location_type: LocationType | None = Query(None),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> AvailabilitySummaryResponse:
    result = await get_availability_summary(
        session,
        AvailabilityQuery(
            professional_id=professional_id,
            service_id=service_id,
            offering_id=offering_id,
            location_type=location_type,
        ),
        now,
    )
    terms = result.terms
    return AvailabilitySummaryResponse(
        professional_id=result.professional_id,
        time_zone=terms.time_zone,
        offering_id=terms.offering_id,
        location_type=terms.location_type,
        price=_money(terms.price),
        duration_minutes=terms.slot_minutes,
        days=[AvailableDayOut(day=d.day, slot_count=d.slot_count) for d in result.days],
    )
