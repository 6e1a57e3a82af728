"""
Tests for slot generation.
"""

from datetime import UTC, datetime, timedelta

from booking_engine.core.timezones import local_date, zoned_parts
from booking_engine.models.booking import BookingHold
from booking_engine.services.busy_intervals import BusyInterval, BusySource, interval_for_hold
from booking_engine.services.conflicts import overlaps
from booking_engine.services.slot_service import clamp_limit, generate_slots
from booking_engine.services.working_hours import WeeklySchedule

NY = "America/New_York"
# Monday 07:00 New York
NOW = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)
MONDAY_9_TO_12 = WeeklySchedule.parse({"mon": {"enabled": True, "start": "09:00", "end": "12:00"}})
EVERY_DAY = WeeklySchedule.parse(
    {d: {"enabled": True, "start": "08:00", "end": "20:00"} for d in ("sun", "mon", "tue", "wed", "thu", "fri", "sat")}
)


def _booking(start: datetime, minutes: int, source_id: int = 1) -> BusyInterval:
    return BusyInterval(start, start + timedelta(minutes=minutes), BusySource.BOOKING, source_id)


class TestNewYorkMonday:
    def test_skips_existing_booking(self):
        busy = [_booking(datetime(2026, 1, 5, 15, 0, tzinfo=UTC), 60)]  # 10:00-11:00 local
        slots = generate_slots(
            now=NOW, duration_minutes=60, limit=6, time_zone=NY, schedule=MONDAY_9_TO_12, busy=busy
        )
        assert slots[:2] == [
            datetime(2026, 1, 5, 14, 0, tzinfo=UTC),  # 09:00 local
            datetime(2026, 1, 5, 16, 0, tzinfo=UTC),  # 11:00 local
        ]
        for s in slots:
            assert not overlaps(s, s + timedelta(minutes=60), busy[0].start, busy[0].end)

    def test_next_monday_follows(self):
        slots = generate_slots(
            now=NOW, duration_minutes=60, limit=10, time_zone=NY, schedule=MONDAY_9_TO_12, busy=[]
        )
        # 09:00, 09:30, 10:00, 10:30, 11:00 on each Monday in the horizon
        assert len(slots) == 10
        assert {local_date(s, NY).isoformat() for s in slots} == {"2026-01-05", "2026-01-12"}


class TestSlotInvariants:
    def test_no_slot_crosses_closing(self):
        slots = generate_slots(
            now=NOW, duration_minutes=90, limit=50, time_zone=NY, schedule=MONDAY_9_TO_12, busy=[]
        )
        assert slots
        for s in slots:
            end = zoned_parts(s + timedelta(minutes=90), NY)
            assert end.hour * 60 + end.minute <= 12 * 60
        # 09:00, 09:30, 10:00, 10:30 only
        assert len([s for s in slots if local_date(s, NY).day == 5]) == 4

    def test_lead_time(self):
        now = datetime(2026, 1, 5, 13, 55, tzinfo=UTC)  # 08:55 local
        slots = generate_slots(
            now=now, duration_minutes=30, limit=3, time_zone=NY, schedule=MONDAY_9_TO_12, busy=[]
        )
        assert slots[0] == datetime(2026, 1, 5, 14, 30, tzinfo=UTC)
        assert all(s >= now + timedelta(minutes=10) for s in slots)

    def test_horizon_and_order(self):
        slots = generate_slots(
            now=NOW, duration_minutes=60, limit=10_000, time_zone=NY, schedule=EVERY_DAY, busy=[]
        )
        assert slots == sorted(slots)
        assert max(slots) <= NOW + timedelta(days=10)
        assert min(slots) >= NOW + timedelta(minutes=10)

    def test_limit_stops_early(self):
        slots = generate_slots(
            now=NOW, duration_minutes=60, limit=2, time_zone=NY, schedule=EVERY_DAY, busy=[]
        )
        assert slots == [
            datetime(2026, 1, 5, 13, 0, tzinfo=UTC),
            datetime(2026, 1, 5, 13, 30, tzinfo=UTC),
        ]

    def test_no_slot_conflicts_with_any_busy_interval(self):
        busy = [
            _booking(NOW + timedelta(hours=h), 45, source_id=h)
            for h in range(1, 240, 7)
        ]
        busy.append(
            interval_for_hold(
                BookingHold(id=99, professional_id=1, scheduled_for=datetime(2026, 1, 6, 15, 0), expires_at=datetime(2026, 1, 6, 0, 0)),
                60,
            )
        )
        slots = generate_slots(
            now=NOW, duration_minutes=60, limit=500, time_zone=NY, schedule=EVERY_DAY, busy=busy
        )
        assert slots
        for s in slots:
            for bi in busy:
                assert not overlaps(s, s + timedelta(minutes=60), bi.start, bi.end)

    def test_closed_schedule_yields_nothing(self):
        assert generate_slots(
            now=NOW, duration_minutes=60, limit=6, time_zone=NY, schedule=WeeklySchedule.parse(None), busy=[]
        ) == []

    def test_deterministic(self):
        kwargs = dict(now=NOW, duration_minutes=45, limit=20, time_zone=NY, schedule=EVERY_DAY, busy=[])
        assert generate_slots(**kwargs) == generate_slots(**kwargs)


class TestDstDays:
    def test_spring_forward_sunday(self):
        sunday = WeeklySchedule.parse({"sun": {"enabled": True, "start": "09:00", "end": "10:00"}})
        now = datetime(2026, 3, 7, 12, 0, tzinfo=UTC)
        slots = generate_slots(now=now, duration_minutes=60, limit=1, time_zone=NY, schedule=sunday, busy=[])
        # 09:00 EDT on 2026-03-08
        assert slots == [datetime(2026, 3, 8, 13, 0, tzinfo=UTC)]

    def test_fall_back_sunday(self):
        sunday = WeeklySchedule.parse({"sun": {"enabled": True, "start": "09:00", "end": "10:00"}})
        now = datetime(2026, 10, 31, 12, 0, tzinfo=UTC)
        slots = generate_slots(now=now, duration_minutes=60, limit=1, time_zone=NY, schedule=sunday, busy=[])
        # 09:00 EST on 2026-11-01
        assert slots == [datetime(2026, 11, 1, 14, 0, tzinfo=UTC)]

    def test_spring_forward_gap_has_no_slots(self):
        early_sunday = WeeklySchedule.parse({"sun": {"enabled": True, "start": "00:00", "end": "05:00"}})
        now = datetime(2026, 3, 7, 12, 0, tzinfo=UTC)
        slots = generate_slots(
            now=now, duration_minutes=30, limit=50, time_zone=NY, schedule=early_sunday, busy=[]
        )
        march_8 = [s for s in slots if local_date(s, NY) == datetime(2026, 3, 8).date()]
        assert slots == sorted(set(slots))
        assert all(zoned_parts(s, NY).hour != 2 for s in march_8)
        # 00:00-01:30 EST then 03:00-04:30 EDT
        assert march_8 == [datetime(2026, 3, 8, h, m, tzinfo=UTC) for h in (5, 6, 7, 8) for m in (0, 30)]

    def test_fall_back_slots_stay_in_order(self):
        early_sunday = WeeklySchedule.parse({"sun": {"enabled": True, "start": "00:00", "end": "03:00"}})
        now = datetime(2026, 10, 31, 12, 0, tzinfo=UTC)
        slots = generate_slots(
            now=now, duration_minutes=30, limit=50, time_zone=NY, schedule=early_sunday, busy=[]
        )
        assert slots == sorted(set(slots))
        assert slots[0] == datetime(2026, 11, 1, 4, 0, tzinfo=UTC)


class TestClampLimit:
    def test_defaults_and_caps(self):
        assert clamp_limit(None, 6, 12) == 6
        assert clamp_limit(0, 6, 12) == 6
        assert clamp_limit(-3, 6, 12) == 6
        assert clamp_limit(4, 6, 12) == 4
        assert clamp_limit(50, 6, 12) == 12
