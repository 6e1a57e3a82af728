from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = True

    # JWT (tokens are issued by the auth service; we only verify them)
    secret_key: str
    access_token_expire_minutes: int = 15
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Timezone used when a professional/booking has none or an invalid one
    default_time_zone: str = "America/Los_Angeles"

    # Slot generation rules
    slot_horizon_days: int = 10
    slot_step_minutes: int = 30
    slot_lead_time_minutes: int = 10
    default_service_duration_minutes: int = 60

    # Availability query
    availability_default_limit: int = 6
    availability_max_limit: int = 12
    other_pros_default_limit: int = 6
    other_pros_max_limit: int = 12
    other_pros_slot_limit: int = 4
    # Day view may look this far ahead; the summary lists this many days after today
    day_max_days_ahead: int = 365
    summary_days_ahead: int = 14

    # Calendar blocks (time off), minutes
    calendar_block_min_minutes: int = 15
    calendar_block_max_minutes: int = 24 * 60

    # Reschedule bounds (minutes)
    duration_snap_minutes: int = 15
    min_duration_minutes: int = 15
    max_duration_minutes: int = 12 * 60
    max_buffer_minutes: int = 180

    # Aftercare
    aftercare_notes_max: int = 4000
    aftercare_max_products: int = 10
    product_name_max: int = 80
    product_note_max: int = 140
    rebook_reminder_days_before_default: int = 2
    rebook_reminder_days_before_max: int = 30
    product_reminder_days_after_default: int = 7
    product_reminder_days_after_max: int = 180
    # A BOOK-mode date may be this far in the past (clock skew between client and server)
    rebook_past_tolerance_seconds: int = 60

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith(("postgresql", "postgres"))


settings = Settings()
