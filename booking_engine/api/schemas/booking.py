from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from booking_engine.models.aftercare import RebookMode
from booking_engine.models.booking import BookingStatus
from booking_engine.services.rebook_service import RebookAction


class ServiceItemIn(BaseModel):
    service_id: int
    offering_id: int
    price_snapshot: Decimal = Field(ge=0)
    duration_minutes_snapshot: int
    sort_order: int | None = None


class ProRescheduleRequest(BaseModel):
    scheduled_for: datetime | None = None
    duration_minutes: int | None = None
    buffer_minutes: int | None = None
    service_items: list[ServiceItemIn] | None = None
    allow_outside_working_hours: bool = False
    notify_client: bool = False


class ClientRescheduleRequest(BaseModel):
    scheduled_for: datetime


class BookingScheduleOut(BaseModel):
    id: int
    status: BookingStatus
    scheduled_for: datetime
    ends_at: datetime
    duration_minutes: int
    buffer_minutes: int
    subtotal: str | None = None
    time_zone: str
    client_notified: bool = False


class RebookRequest(BaseModel):
    mode: RebookAction
    rebooked_for: datetime | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None


class RebookStateOut(BaseModel):
    mode: RebookMode
    rebooked_for: datetime | None = None
    rebook_window_start: datetime | None = None
    rebook_window_end: datetime | None = None


class RebookResponse(BaseModel):
    booking_id: int
    aftercare_id: int
    rebook: RebookStateOut
    next_booking_id: int | None = None
    reminders_created: int
    reminders_removed: int
