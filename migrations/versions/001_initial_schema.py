"""Initial schema: profiles, services, bookings, holds, aftercare, reminders, notifications.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

location_type = sa.Enum("SALON", "MOBILE", name="locationtype")
booking_status = sa.Enum("PENDING", "ACCEPTED", "COMPLETED", "CANCELLED", name="bookingstatus")
session_step = sa.Enum(
    "NONE",
    "CONSULTATION_DRAFT",
    "AWAITING_CLIENT_APPROVAL",
    "BEFORE_PHOTOS",
    "READY_TO_FINISH",
    "FINISH_DETAILS",
    "AFTER_PHOTOS",
    "DONE",
    name="sessionstep",
)
booking_source = sa.Enum("REQUESTED", "AFTERCARE", name="bookingsource")
rebook_mode = sa.Enum("NONE", "BOOKED_NEXT_APPOINTMENT", "RECOMMENDED_WINDOW", name="rebookmode")
reminder_type = sa.Enum("GENERAL", "AFTERCARE", "REBOOK", "PRODUCT_FOLLOWUP", name="remindertype")
notification_type = sa.Enum("AFTERCARE", "BOOKING_UPDATE", name="clientnotificationtype")


def upgrade() -> None:
    op.create_table(
        "professional_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("business_name", sa.String(), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("time_zone", sa.String(), nullable=True),
        sa.Column("working_hours", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "client_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("default_duration_minutes", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "service_offerings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("offers_in_salon", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("offers_mobile", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("salon_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("mobile_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("salon_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("mobile_duration_minutes", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["professional_id"], ["professional_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_service_offerings_professional_id"), "service_offerings", ["professional_id"])
    op.create_index(op.f("ix_service_offerings_service_id"), "service_offerings", ["service_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=True),
        sa.Column("offering_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(), nullable=False),
        sa.Column("total_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subtotal_snapshot", sa.Numeric(10, 2), nullable=True),
        sa.Column("status", booking_status, nullable=False, server_default="PENDING"),
        sa.Column("session_step", session_step, nullable=False, server_default="NONE"),
        sa.Column("location_type", location_type, nullable=False, server_default="SALON"),
        sa.Column("location_time_zone", sa.String(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("source", booking_source, nullable=False, server_default="REQUESTED"),
        sa.Column("rebook_of_booking_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["professional_id"], ["professional_profiles.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["client_profiles.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.ForeignKeyConstraint(["offering_id"], ["service_offerings.id"]),
        sa.ForeignKeyConstraint(["rebook_of_booking_id"], ["bookings.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_professional_id"), "bookings", ["professional_id"])
    op.create_index(op.f("ix_bookings_client_id"), "bookings", ["client_id"])
    op.create_index(op.f("ix_bookings_scheduled_for"), "bookings", ["scheduled_for"])
    op.create_index(op.f("ix_bookings_status"), "bookings", ["status"])

    op.create_table(
        "booking_service_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("offering_id", sa.Integer(), nullable=True),
        sa.Column("price_snapshot", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration_minutes_snapshot", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.ForeignKeyConstraint(["offering_id"], ["service_offerings.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_booking_service_items_booking_id"), "booking_service_items", ["booking_id"])

    op.create_table(
        "booking_holds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("offering_id", sa.Integer(), nullable=True),
        sa.Column("client_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["professional_id"], ["professional_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["offering_id"], ["service_offerings.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["client_profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_booking_holds_professional_id"), "booking_holds", ["professional_id"])
    op.create_index(op.f("ix_booking_holds_scheduled_for"), "booking_holds", ["scheduled_for"])
    op.create_index(op.f("ix_booking_holds_expires_at"), "booking_holds", ["expires_at"])

    op.create_table(
        "aftercare_summaries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("rebook_mode", rebook_mode, nullable=False, server_default="NONE"),
        sa.Column("rebooked_for", sa.DateTime(), nullable=True),
        sa.Column("rebook_window_start", sa.DateTime(), nullable=True),
        sa.Column("rebook_window_end", sa.DateTime(), nullable=True),
        sa.Column("rebook_reminder_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("rebook_reminder_days_before", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("product_reminder_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("product_reminder_days_after", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("sent_to_client_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_aftercare_summaries_booking_id"), "aftercare_summaries", ["booking_id"], unique=True)

    op.create_table(
        "product_recommendations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("aftercare_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["aftercare_id"], ["aftercare_summaries.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_product_recommendations_aftercare_id"), "product_recommendations", ["aftercare_id"])

    op.create_table(
        "reminders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dedupe_key", sa.String(), nullable=True),
        sa.Column("professional_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=True),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("type", reminder_type, nullable=False, server_default="GENERAL"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.String(), nullable=True),
        sa.Column("due_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["professional_id"], ["professional_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["client_id"], ["client_profiles.id"]),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_reminders_dedupe_key"), "reminders", ["dedupe_key"], unique=True)
    op.create_index(op.f("ix_reminders_professional_id"), "reminders", ["professional_id"])
    op.create_index(op.f("ix_reminders_due_at"), "reminders", ["due_at"])

    op.create_table(
        "client_notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dedupe_key", sa.String(), nullable=True),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.String(), nullable=True),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("aftercare_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["client_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["aftercare_id"], ["aftercare_summaries.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_client_notifications_dedupe_key"), "client_notifications", ["dedupe_key"], unique=True)
    op.create_index(op.f("ix_client_notifications_client_id"), "client_notifications", ["client_id"])


def downgrade() -> None:
    op.drop_table("client_notifications")
    op.drop_table("reminders")
    op.drop_table("product_recommendations")
    op.drop_table("aftercare_summaries")
    op.drop_table("booking_holds")
    op.drop_table("booking_service_items")
    op.drop_table("bookings")
    op.drop_table("service_offerings")
    op.drop_table("services")
    op.drop_table("client_profiles")
    op.drop_table("professional_profiles")
    bind = op.get_bind()
    for enum in (
        notification_type,
        reminder_type,
        rebook_mode,
        booking_source,
        session_step,
        booking_status,
        location_type,
    ):
        enum.drop(bind, checkfirst=True)
