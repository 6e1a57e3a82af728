"""
Tests for half-open interval overlap.
"""

from datetime import UTC, datetime, timedelta

from booking_engine.services.busy_intervals import BusyInterval, BusySource
from booking_engine.services.conflicts import find_conflicts, has_conflict, overlaps

T0 = datetime(2026, 1, 5, 15, 0, tzinfo=UTC)
H = timedelta(hours=1)


class TestOverlaps:
    def test_touching_endpoints_do_not_overlap(self):
        assert not overlaps(T0, T0 + H, T0 + H, T0 + 2 * H)
        assert not overlaps(T0 + H, T0 + 2 * H, T0, T0 + H)

    def test_partial_and_containment(self):
        assert overlaps(T0, T0 + H, T0 + H / 2, T0 + 2 * H)
        assert overlaps(T0, T0 + 3 * H, T0 + H, T0 + 2 * H)
        assert overlaps(T0 + H, T0 + 2 * H, T0, T0 + 3 * H)

    def test_symmetric(self):
        a = (T0, T0 + H)
        b = (T0 + timedelta(minutes=59), T0 + 2 * H)
        assert overlaps(*a, *b) == overlaps(*b, *a)


class TestFindConflicts:
    def test_returns_only_overlapping(self):
        busy = [
            BusyInterval(T0 - H, T0, BusySource.BOOKING, 1),
            BusyInterval(T0 + H / 2, T0 + H, BusySource.HOLD, 2),
            BusyInterval(T0 + 2 * H, T0 + 3 * H, BusySource.BOOKING, 3),
        ]
        found = find_conflicts(T0, T0 + H, busy)
        assert [(bi.source, bi.source_id) for bi in found] == [(BusySource.HOLD, 2)]
        assert has_conflict(T0, T0 + H, busy)
        assert not has_conflict(T0 + H, T0 + 2 * H, busy)

    def test_empty(self):
        assert find_conflicts(T0, T0 + H, []) == []
