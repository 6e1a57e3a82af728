"""
Tests for rebook transitions on completed bookings.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from booking_engine.core.errors import (
    Forbidden,
    InvalidState,
    OutsideWorkingHours,
    SchedulingConflict,
    ValidationError,
)
from booking_engine.models.aftercare import AftercareSummary, RebookMode, Reminder, ReminderType
from booking_engine.models.booking import Booking, BookingServiceItem, BookingSource, BookingStatus
from booking_engine.models.professional import ClientProfile, ProfessionalProfile
from booking_engine.services.aftercare_service import AftercareSubmission, submit_aftercare
from booking_engine.services import rebook_service
from booking_engine.services.rebook_service import RebookAction, apply_rebook, reminder_dedupe_key
from tests.conftest import (
    NOW,
    make_booking,
    make_client,
    make_completed_booking,
    make_item,
    make_offering,
    make_pro,
    make_service,
)

# Monday 10:00 in New York, a week after the completed booking
NEXT_MONDAY = datetime(2026, 1, 12, 15, 0, tzinfo=UTC)


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _reminder(session, key):
    result = await session.execute(
        select(Reminder).where(Reminder.dedupe_key == key).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class TestBook:
    async def test_creates_follow_up_with_copied_items(self, session):
        booking = await make_completed_booking(session, buffer=15)
        service = await make_service(session)
        pro_id = booking.professional_id
        pro = await session.get(ProfessionalProfile, pro_id)
        offering = await make_offering(session, pro, service)
        await make_item(session, booking, offering, price=Decimal("40.00"), duration=45)
        await make_item(session, booking, offering, price=Decimal("10.00"), duration=30, sort_order=1)

        result = await apply_rebook(session, pro_id, booking.id, RebookAction.BOOK, NOW, rebooked_for=NEXT_MONDAY)

        assert result.state.mode == RebookMode.BOOKED_NEXT_APPOINTMENT
        assert result.state.rebooked_for == NEXT_MONDAY
        follow_up = await session.get(Booking, result.next_booking_id)
        assert follow_up.status == BookingStatus.ACCEPTED
        assert follow_up.source == BookingSource.AFTERCARE
        assert follow_up.rebook_of_booking_id == booking.id
        assert follow_up.total_duration_minutes == 75
        assert follow_up.buffer_minutes == 15
        items = (
            await session.execute(
                select(BookingServiceItem)
                .where(BookingServiceItem.booking_id == follow_up.id)
                .order_by(BookingServiceItem.sort_order)
            )
        ).scalars().all()
        assert [(i.price_snapshot, i.duration_minutes_snapshot) for i in items] == [
            (Decimal("40.00"), 45),
            (Decimal("10.00"), 30),
        ]

    async def test_follow_up_is_written_under_the_professional_lock(self, session, monkeypatch):
        booking = await make_completed_booking(session)
        locked: list[int] = []
        lock = rebook_service.lock_professional

        async def recording_lock(s, professional_id):
            locked.append(professional_id)
            return await lock(s, professional_id)

        monkeypatch.setattr(rebook_service, "lock_professional", recording_lock)
        result = await apply_rebook(
            session, booking.professional_id, booking.id, RebookAction.BOOK, NOW, rebooked_for=NEXT_MONDAY
        )
        assert result.next_booking_id is not None
        assert locked == [booking.professional_id]

    async def test_past_date_rejected_without_writes(self, session):
        booking = await make_completed_booking(session)
        with pytest.raises(ValidationError):
            await apply_rebook(
                session,
                booking.professional_id,
                booking.id,
                RebookAction.BOOK,
                NOW,
                rebooked_for=NOW - timedelta(minutes=2),
            )
        assert await _count(session, AftercareSummary) == 0
        assert await _count(session, Booking) == 1

    async def test_small_clock_skew_tolerated(self, session):
        always_open = {
            day: {"enabled": True, "start": "00:00", "end": "23:59"}
            for day in ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
        }
        pro = await make_pro(session, working_hours=always_open)
        booking = await make_completed_booking(session, pro=pro)
        result = await apply_rebook(
            session, pro.id, booking.id, RebookAction.BOOK, NOW, rebooked_for=NOW - timedelta(seconds=30)
        )
        assert result.next_booking_id is not None

    async def test_conflict_leaves_state_unchanged(self, session):
        booking = await make_completed_booking(session)
        await apply_rebook(
            session,
            booking.professional_id,
            booking.id,
            RebookAction.RECOMMEND_WINDOW,
            NOW,
            window_start=NEXT_MONDAY,
            window_end=NEXT_MONDAY + timedelta(days=7),
        )
        pro = await session.get(ProfessionalProfile, booking.professional_id)
        client = await session.get(ClientProfile, booking.client_id)
        await make_booking(session, pro, client, NEXT_MONDAY + timedelta(minutes=30))
        bookings_before = await _count(session, Booking)

        with pytest.raises(SchedulingConflict):
            await apply_rebook(
                session, pro.id, booking.id, RebookAction.BOOK, NOW, rebooked_for=NEXT_MONDAY
            )
        summary = (await session.execute(select(AftercareSummary))).scalar_one()
        assert summary.rebook_mode == RebookMode.RECOMMENDED_WINDOW
        assert summary.rebooked_for is None
        assert await _count(session, Booking) == bookings_before

    async def test_closed_day_rejected(self, session):
        booking = await make_completed_booking(session)
        saturday = datetime(2026, 1, 10, 15, 0, tzinfo=UTC)
        with pytest.raises(OutsideWorkingHours):
            await apply_rebook(
                session, booking.professional_id, booking.id, RebookAction.BOOK, NOW, rebooked_for=saturday
            )

    async def test_missing_date(self, session):
        booking = await make_completed_booking(session)
        with pytest.raises(ValidationError):
            await apply_rebook(session, booking.professional_id, booking.id, RebookAction.BOOK, NOW)


class TestEligibility:
    @pytest.mark.parametrize("status", [BookingStatus.ACCEPTED, BookingStatus.PENDING, BookingStatus.CANCELLED])
    async def test_only_completed_bookings(self, session, status):
        booking = await make_completed_booking(session, status=status)
        with pytest.raises(InvalidState):
            await apply_rebook(session, booking.professional_id, booking.id, RebookAction.CLEAR, NOW)
        assert await _count(session, AftercareSummary) == 0

    async def test_other_professional(self, session):
        booking = await make_completed_booking(session)
        other = await make_pro(session)
        with pytest.raises(Forbidden):
            await apply_rebook(session, other.id, booking.id, RebookAction.CLEAR, NOW)


class TestWindowAndClear:
    async def test_equal_window_rejected(self, session):
        booking = await make_completed_booking(session)
        with pytest.raises(ValidationError):
            await apply_rebook(
                session,
                booking.professional_id,
                booking.id,
                RebookAction.RECOMMEND_WINDOW,
                NOW,
                window_start=NEXT_MONDAY,
                window_end=NEXT_MONDAY,
            )
        assert await _count(session, AftercareSummary) == 0

    async def test_clear_twice(self, session):
        booking = await make_completed_booking(session)
        first = await apply_rebook(session, booking.professional_id, booking.id, RebookAction.CLEAR, NOW)
        second = await apply_rebook(session, booking.professional_id, booking.id, RebookAction.CLEAR, NOW)
        assert first.state == second.state
        assert first.state.mode == RebookMode.NONE
        assert first.aftercare_id == second.aftercare_id
        assert await _count(session, AftercareSummary) == 1

    async def test_transitions_rederive_reminders(self, session):
        booking = await make_completed_booking(session)
        await submit_aftercare(
            session,
            booking.professional_id,
            booking.id,
            AftercareSubmission(
                rebook_mode=RebookMode.RECOMMENDED_WINDOW,
                rebook_window_start=NEXT_MONDAY,
                rebook_window_end=NEXT_MONDAY + timedelta(days=14),
                create_rebook_reminder=True,
                rebook_reminder_days_before=3,
            ),
            NOW,
        )
        key = reminder_dedupe_key(booking.id, ReminderType.REBOOK)
        reminder = await _reminder(session, key)
        assert reminder.due_at == datetime(2026, 1, 9, 15, 0)

        cleared = await apply_rebook(session, booking.professional_id, booking.id, RebookAction.CLEAR, NOW)
        assert cleared.reminders_removed == 1
        assert await _reminder(session, key) is None

        booked = await apply_rebook(
            session,
            booking.professional_id,
            booking.id,
            RebookAction.BOOK,
            NOW,
            rebooked_for=NEXT_MONDAY + timedelta(days=1),
        )
        assert booked.reminders_created == 1
        reminder = await _reminder(session, key)
        assert reminder.due_at == datetime(2026, 1, 10, 15, 0)
        assert reminder.body.startswith("Target date: ")
