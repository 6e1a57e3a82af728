from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class LocationType(str, Enum):
    SALON = "SALON"
    MOBILE = "MOBILE"


class ProfessionalProfile(SQLModel, table=True):
    __tablename__ = "professional_profiles"
    id: int | None = Field(default=None, primary_key=True)
    business_name: str | None = None
    avatar_url: str | None = None
    location: str | None = None
    city: str | None = None
    time_zone: str | None = None  # IANA identifier, validated on read
    # {"mon": {"enabled": true, "start": "09:00", "end": "17:00"}, ...}
    working_hours: dict | None = Field(default=None, sa_column=Column(JSON, nullable=True))


class ClientProfile(SQLModel, table=True):
    __tablename__ = "client_profiles"
    id: int | None = Field(default=None, primary_key=True)
    first_name: str | None = None
    last_name: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or "Client"


class Service(SQLModel, table=True):
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    default_duration_minutes: int | None = None


class ServiceOffering(SQLModel, table=True):
    __tablename__ = "service_offerings"
    id: int | None = Field(default=None, primary_key=True)
    professional_id: int = Field(foreign_key="professional_profiles.id", index=True)
    service_id: int = Field(foreign_key="services.id", index=True)
    is_active: bool = True
    offers_in_salon: bool = True
    offers_mobile: bool = False
    salon_price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    mobile_price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    salon_duration_minutes: int | None = None
    mobile_duration_minutes: int | None = None
