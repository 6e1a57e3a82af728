from datetime import date, datetime

from pydantic import BaseModel

from booking_engine.models.professional import LocationType


class ProAvailabilityOut(BaseModel):
    id: int
    business_name: str | None = None
    avatar_url: str | None = None
    location: str | None = None
    offering_id: int | None = None
    location_type: LocationType | None = None
    price: str | None = None  # fixed 2dp
    duration_minutes: int | None = None
    time_zone: str
    slots: list[datetime]  # UTC
    is_primary: bool = False


class AvailabilityResponse(BaseModel):
    service_id: int | None = None
    time_zone: str
    primary_pro: ProAvailabilityOut
    other_pros: list[ProAvailabilityOut]


class DayAvailabilityResponse(BaseModel):
    professional_id: int
    day: date
    time_zone: str
    day_start_utc: datetime
    day_end_exclusive_utc: datetime
    offering_id: int | None = None
    location_type: LocationType | None = None
    price: str | None = None
    duration_minutes: int
    slots: list[datetime]


class AvailableDayOut(BaseModel):
    day: date
    slot_count: int


class AvailabilitySummaryResponse(BaseModel):
    professional_id: int
    time_zone: str
    offering_id: int | None = None
    location_type: LocationType | None = None
    price: str | None = None
    duration_minutes: int
    days: list[AvailableDayOut]
