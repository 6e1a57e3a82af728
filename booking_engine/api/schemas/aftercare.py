from datetime import datetime

from pydantic import BaseModel, Field

from booking_engine.api.schemas.booking import RebookStateOut
from booking_engine.models.aftercare import RebookMode


class ProductIn(BaseModel):
    name: str
    url: str | None = None
    note: str | None = None


class AftercareRequest(BaseModel):
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
    recommended_products: list[ProductIn] = Field(default_factory=list)
    send_to_client: bool = False


class AftercareResponse(BaseModel):
    aftercare_id: int
    booking_id: int
    rebook: RebookStateOut
    reminders_created: int
    reminders_removed: int
    client_notified: bool
