"""Shared test fixtures and factories."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import booking_engine.models  # noqa: F401 - register tables
from booking_engine.core.timezones import to_naive_utc
from booking_engine.models.booking import (
    Booking,
    BookingHold,
    BookingServiceItem,
    BookingStatus,
    SessionStep,
)
from booking_engine.models.calendar import CalendarBlock
from booking_engine.models.professional import (
    ClientProfile,
    ProfessionalProfile,
    Service,
    ServiceOffering,
)

# Monday 07:00 in New York (EST, UTC-5)
NOW = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)

WEEKDAYS_9_TO_5 = {
    day: {"enabled": True, "start": "09:00", "end": "17:00"}
    for day in ("mon", "tue", "wed", "thu", "fri")
} | {
    "sat": {"enabled": False, "start": "09:00", "end": "17:00"},
    "sun": {"enabled": False, "start": "09:00", "end": "17:00"},
}


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with maker() as s:
        yield s


async def make_pro(
    session: AsyncSession,
    time_zone: str | None = "America/New_York",
    working_hours: dict | None = None,
    **kw,
) -> ProfessionalProfile:
    pro = ProfessionalProfile(
        business_name=kw.pop("business_name", "Studio"),
        time_zone=time_zone,
        working_hours=WEEKDAYS_9_TO_5 if working_hours is None else working_hours,
        **kw,
    )
    session.add(pro)
    await session.flush()
    return pro


async def make_client(session: AsyncSession, first_name: str = "Ada", last_name: str = "Lovelace") -> ClientProfile:
    client = ClientProfile(first_name=first_name, last_name=last_name)
    session.add(client)
    await session.flush()
    return client


async def make_service(session: AsyncSession, name: str = "Haircut") -> Service:
    service = Service(name=name, default_duration_minutes=60)
    session.add(service)
    await session.flush()
    return service


async def make_offering(
    session: AsyncSession, pro: ProfessionalProfile, service: Service, **kw
) -> ServiceOffering:
    defaults = {
        "offers_in_salon": True,
        "offers_mobile": False,
        "salon_price": Decimal("50.00"),
        "salon_duration_minutes": 60,
    }
    defaults.update(kw)
    offering = ServiceOffering(professional_id=pro.id, service_id=service.id, **defaults)
    session.add(offering)
    await session.flush()
    return offering


async def make_booking(
    session: AsyncSession,
    pro: ProfessionalProfile,
    client: ClientProfile,
    start: datetime,
    duration: int | None = 60,
    buffer: int = 0,
    status: BookingStatus = BookingStatus.ACCEPTED,
    **kw,
) -> Booking:
    booking = Booking(
        professional_id=pro.id,
        client_id=client.id,
        scheduled_for=to_naive_utc(start),
        total_duration_minutes=duration,
        buffer_minutes=buffer,
        status=status,
        **kw,
    )
    session.add(booking)
    await session.flush()
    return booking


async def make_item(
    session: AsyncSession,
    booking: Booking,
    offering: ServiceOffering,
    price: Decimal = Decimal("50.00"),
    duration: int = 60,
    sort_order: int = 0,
) -> BookingServiceItem:
    item = BookingServiceItem(
        booking_id=booking.id,
        service_id=offering.service_id,
        offering_id=offering.id,
        price_snapshot=price,
        duration_minutes_snapshot=duration,
        sort_order=sort_order,
    )
    session.add(item)
    await session.flush()
    return item


async def make_hold(
    session: AsyncSession, pro: ProfessionalProfile, start: datetime, expires_at: datetime
) -> BookingHold:
    hold = BookingHold(
        professional_id=pro.id,
        scheduled_for=to_naive_utc(start),
        expires_at=to_naive_utc(expires_at),
    )
    session.add(hold)
    await session.flush()
    return hold


async def make_block(
    session: AsyncSession, pro: ProfessionalProfile, start: datetime, end: datetime, note: str | None = None
) -> CalendarBlock:
    block = CalendarBlock(
        professional_id=pro.id, starts_at=to_naive_utc(start), ends_at=to_naive_utc(end), note=note
    )
    session.add(block)
    await session.flush()
    return block


async def make_completed_booking(session: AsyncSession, **kw) -> Booking:
    """Completed Monday 10:00 New York booking, finished an hour later."""
    pro = kw.pop("pro", None) or await make_pro(session)
    client = kw.pop("client", None) or await make_client(session)
    start = datetime(2026, 1, 5, 15, 0, tzinfo=UTC)
    return await make_booking(
        session,
        pro,
        client,
        start,
        status=kw.pop("status", BookingStatus.COMPLETED),
        session_step=kw.pop("session_step", SessionStep.DONE),
        finished_at=to_naive_utc(start + timedelta(hours=1)),
        **kw,
    )
