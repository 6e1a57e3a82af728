from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class RebookMode(str, Enum):
    NONE = "NONE"
    BOOKED_NEXT_APPOINTMENT = "BOOKED_NEXT_APPOINTMENT"
    RECOMMENDED_WINDOW = "RECOMMENDED_WINDOW"


class ReminderType(str, Enum):
    GENERAL = "GENERAL"
    AFTERCARE = "AFTERCARE"
    REBOOK = "REBOOK"
    PRODUCT_FOLLOWUP = "PRODUCT_FOLLOWUP"


class ClientNotificationType(str, Enum):
    AFTERCARE = "AFTERCARE"
    BOOKING_UPDATE = "BOOKING_UPDATE"


class AftercareSummary(SQLModel, table=True):
    __tablename__ = "aftercare_summaries"
    id: int | None = Field(default=None, primary_key=True)
    booking_id: int = Field(foreign_key="bookings.id", unique=True, index=True)
    notes: str | None = None
    rebook_mode: RebookMode = Field(default=RebookMode.NONE)
    rebooked_for: datetime | None = None
    rebook_window_start: datetime | None = None
    rebook_window_end: datetime | None = None
    # Reminder settings are kept so any later rebook transition re-derives the same reminders
    rebook_reminder_enabled: bool = False
    rebook_reminder_days_before: int = 2
    product_reminder_enabled: bool = False
    product_reminder_days_after: int = 7
    sent_to_client_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class ProductRecommendation(SQLModel, table=True):
    __tablename__ = "product_recommendations"
    id: int | None = Field(default=None, primary_key=True)
    aftercare_id: int = Field(foreign_key="aftercare_summaries.id", index=True)
    name: str
    url: str | None = None
    note: str | None = None
    sort_order: int = 0


class Reminder(SQLModel, table=True):
    __tablename__ = "reminders"
    id: int | None = Field(default=None, primary_key=True)
    dedupe_key: str | None = Field(default=None, unique=True, index=True)
    professional_id: int = Field(foreign_key="professional_profiles.id", index=True)
    client_id: int | None = Field(default=None, foreign_key="client_profiles.id")
    booking_id: int | None = Field(default=None, foreign_key="bookings.id")
    type: ReminderType = Field(default=ReminderType.GENERAL)
    title: str
    body: str | None = None
    due_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)
    completed_at: datetime | None = None


class ClientNotification(SQLModel, table=True):
    __tablename__ = "client_notifications"
    id: int | None = Field(default=None, primary_key=True)
    dedupe_key: str | None = Field(default=None, unique=True, index=True)
    client_id: int = Field(foreign_key="client_profiles.id", index=True)
    type: ClientNotificationType
    title: str
    body: str | None = None
    booking_id: int | None = Field(default=None, foreign_key="bookings.id")
    aftercare_id: int | None = Field(default=None, foreign_key="aftercare_summaries.id")
    created_at: datetime = Field(default_factory=_utc_naive_now)
    read_at: datetime | None = None
