from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from sqlmodel import Field, SQLModel

from booking_engine.models.professional import LocationType


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SessionStep(str, Enum):
    NONE = "NONE"
    CONSULTATION_DRAFT = "CONSULTATION_DRAFT"
    AWAITING_CLIENT_APPROVAL = "AWAITING_CLIENT_APPROVAL"
    BEFORE_PHOTOS = "BEFORE_PHOTOS"
    READY_TO_FINISH = "READY_TO_FINISH"
    FINISH_DETAILS = "FINISH_DETAILS"
    AFTER_PHOTOS = "AFTER_PHOTOS"
    DONE = "DONE"


class BookingSource(str, Enum):
    REQUESTED = "REQUESTED"
    AFTERCARE = "AFTERCARE"


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    id: int | None = Field(default=None, primary_key=True)
    professional_id: int = Field(foreign_key="professional_profiles.id", index=True)
    client_id: int = Field(foreign_key="client_profiles.id", index=True)
    service_id: int | None = Field(default=None, foreign_key="services.id")
    offering_id: int | None = Field(default=None, foreign_key="service_offerings.id")
    scheduled_for: datetime = Field(index=True)
    total_duration_minutes: int | None = None
    buffer_minutes: int = 0
    subtotal_snapshot: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    status: BookingStatus = Field(default=BookingStatus.PENDING, index=True)
    session_step: SessionStep = Field(default=SessionStep.NONE)
    location_type: LocationType = Field(default=LocationType.SALON)
    location_time_zone: str | None = None
    finished_at: datetime | None = None
    source: BookingSource = Field(default=BookingSource.REQUESTED)
    rebook_of_booking_id: int | None = Field(default=None, foreign_key="bookings.id")
    created_at: datetime = Field(default_factory=_utc_naive_now)


class BookingServiceItem(SQLModel, table=True):
    __tablename__ = "booking_service_items"
    id: int | None = Field(default=None, primary_key=True)
    booking_id: int = Field(foreign_key="bookings.id", index=True)
    service_id: int = Field(foreign_key="services.id")
    offering_id: int | None = Field(default=None, foreign_key="service_offerings.id")
    price_snapshot: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    duration_minutes_snapshot: int
    sort_order: int = 0


class BookingHold(SQLModel, table=True):
    """Short-lived reservation of a start instant while a client checks out."""

    __tablename__ = "booking_holds"
    id: int | None = Field(default=None, primary_key=True)
    professional_id: int = Field(foreign_key="professional_profiles.id", index=True)
    offering_id: int | None = Field(default=None, foreign_key="service_offerings.id")
    client_id: int | None = Field(default=None, foreign_key="client_profiles.id")
    scheduled_for: datetime = Field(index=True)
    expires_at: datetime = Field(index=True)
