from datetime import datetime

from sqlmodel import Field, SQLModel

from booking_engine.models.booking import _utc_naive_now


class CalendarBlock(SQLModel, table=True):
    """Time a professional has blocked off, ``[starts_at, ends_at)`` in naive UTC."""

    __tablename__ = "calendar_blocks"
    id: int | None = Field(default=None, primary_key=True)
    professional_id: int = Field(foreign_key="professional_profiles.id", index=True)
    starts_at: datetime = Field(index=True)
    ends_at: datetime
    note: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
