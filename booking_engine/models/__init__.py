from booking_engine.models.professional import (
    ClientProfile,
    LocationType,
    ProfessionalProfile,
    Service,
    ServiceOffering,
)
from booking_engine.models.booking import (
    Booking,
    BookingHold,
    BookingServiceItem,
    BookingSource,
    BookingStatus,
    SessionStep,
)
from booking_engine.models.calendar import CalendarBlock
from booking_engine.models.aftercare import (
    AftercareSummary,
    ClientNotification,
    ClientNotificationType,
    ProductRecommendation,
    RebookMode,
    Reminder,
    ReminderType,
)

__all__ = [
    "ClientProfile",
    "LocationType",
    "ProfessionalProfile",
    "Service",
    "ServiceOffering",
    "Booking",
    "BookingHold",
    "BookingServiceItem",
    "BookingSource",
    "BookingStatus",
    "SessionStep",
    "CalendarBlock",
    "AftercareSummary",
    "ClientNotification",
    "ClientNotificationType",
    "ProductRecommendation",
    "RebookMode",
    "Reminder",
    "ReminderType",
]
