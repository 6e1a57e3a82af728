"""
Tests for weekly working-hours parsing and containment checks.
"""

from datetime import UTC, date, datetime

import pytest

from booking_engine.core.errors import OutsideWorkingHours
from booking_engine.services.working_hours import (
    DayRule,
    WeeklySchedule,
    Weekday,
    ensure_within_working_hours,
    parse_hhmm,
)

NY = "America/New_York"
MONDAY = date(2026, 1, 5)


class TestParsing:
    def test_parse_hhmm(self):
        assert parse_hhmm("09:00") == 540
        assert parse_hhmm("23:59") == 23 * 60 + 59
        for bad in ("9:00", "24:00", "12:60", "noon", "", None, 900):
            assert parse_hhmm(bad) is None

    def test_enabled_day(self):
        schedule = WeeklySchedule.parse({"mon": {"enabled": True, "start": "09:00", "end": "12:00"}})
        assert schedule.rule_for_date(MONDAY) == DayRule(540, 720)

    def test_missing_disabled_and_malformed_days_are_closed(self):
        schedule = WeeklySchedule.parse(
            {
                "mon": {"enabled": False, "start": "09:00", "end": "17:00"},
                "tue": {"enabled": True, "start": "9am", "end": "17:00"},
                "wed": {"enabled": True, "start": "17:00", "end": "09:00"},
                "thu": {"enabled": True, "start": "10:00", "end": "10:00"},
                "fri": "open",
            }
        )
        assert all(rule is None for rule in schedule.rules.values())

    @pytest.mark.parametrize("blob", [None, [], "mon-fri", 42])
    def test_non_mapping_blob_is_all_closed(self, blob):
        schedule = WeeklySchedule.parse(blob)
        assert set(schedule.rules) == set(Weekday)
        assert all(rule is None for rule in schedule.rules.values())

    def test_rule_for_uses_local_weekday(self):
        schedule = WeeklySchedule.parse({"mon": {"enabled": True, "start": "18:00", "end": "23:00"}})
        # Tuesday 03:30 UTC is Monday 22:30 in New York
        instant = datetime(2026, 1, 6, 3, 30, tzinfo=UTC)
        assert schedule.rule_for(instant, NY) == DayRule(18 * 60, 23 * 60)
        assert schedule.rule_for(instant, "UTC") is None


class TestEnsureWithinWorkingHours:
    schedule = WeeklySchedule.parse({"mon": {"enabled": True, "start": "09:00", "end": "17:00"}})

    def test_inside(self):
        start = datetime(2026, 1, 5, 14, 0, tzinfo=UTC)  # 09:00 local
        end = datetime(2026, 1, 5, 22, 0, tzinfo=UTC)  # 17:00 local
        ensure_within_working_hours(start, end, self.schedule, NY)

    def test_ends_after_closing(self):
        start = datetime(2026, 1, 5, 21, 30, tzinfo=UTC)
        end = datetime(2026, 1, 5, 22, 30, tzinfo=UTC)
        with pytest.raises(OutsideWorkingHours):
            ensure_within_working_hours(start, end, self.schedule, NY)

    def test_starts_before_opening(self):
        start = datetime(2026, 1, 5, 13, 45, tzinfo=UTC)
        end = datetime(2026, 1, 5, 14, 45, tzinfo=UTC)
        with pytest.raises(OutsideWorkingHours):
            ensure_within_working_hours(start, end, self.schedule, NY)

    def test_closed_day(self):
        start = datetime(2026, 1, 6, 15, 0, tzinfo=UTC)  # Tuesday
        end = datetime(2026, 1, 6, 16, 0, tzinfo=UTC)
        with pytest.raises(OutsideWorkingHours, match="Closed"):
            ensure_within_working_hours(start, end, self.schedule, NY)

    def test_spans_midnight(self):
        late = WeeklySchedule.parse({"mon": {"enabled": True, "start": "20:00", "end": "23:59"}})
        start = datetime(2026, 1, 6, 4, 0, tzinfo=UTC)  # Mon 23:00 local
        end = datetime(2026, 1, 6, 5, 30, tzinfo=UTC)  # Tue 00:30 local
        with pytest.raises(OutsideWorkingHours):
            ensure_within_working_hours(start, end, late, NY)

    def test_error_code(self):
        with pytest.raises(OutsideWorkingHours) as exc:
            ensure_within_working_hours(
                datetime(2026, 1, 6, 15, 0, tzinfo=UTC),
                datetime(2026, 1, 6, 16, 0, tzinfo=UTC),
                self.schedule,
                NY,
            )
        assert exc.value.code == "OUTSIDE_WORKING_HOURS"
        assert exc.value.status_code == 422
