from datetime import datetime

from pydantic import BaseModel


class CalendarBlockIn(BaseModel):
    starts_at: datetime
    ends_at: datetime
    note: str | None = None


class CalendarBlockOut(BaseModel):
    id: int
    starts_at: datetime  # UTC
    ends_at: datetime
    note: str | None = None


class CalendarBlockList(BaseModel):
    blocks: list[CalendarBlockOut]
