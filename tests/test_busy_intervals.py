"""
Tests for loading busy intervals from bookings, holds and calendar blocks.
"""

from datetime import UTC, datetime, timedelta

from booking_engine.models.booking import BookingStatus
from booking_engine.services.busy_intervals import BusySource, load_busy_intervals
from tests.conftest import NOW, make_block, make_booking, make_client, make_hold, make_pro

WINDOW_END = NOW + timedelta(days=11)


class TestLoadBusyIntervals:
    async def test_active_bookings_include_buffer(self, session):
        pro = await make_pro(session)
        client = await make_client(session)
        start = datetime(2026, 1, 5, 15, 0, tzinfo=UTC)
        await make_booking(session, pro, client, start, duration=60, buffer=15)

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 30, NOW)
        assert len(busy) == 1
        assert busy[0].source == BusySource.BOOKING
        assert busy[0].start == start
        assert busy[0].end == start + timedelta(minutes=75)

    async def test_cancelled_bookings_are_free(self, session):
        pro = await make_pro(session)
        client = await make_client(session)
        await make_booking(session, pro, client, NOW + timedelta(hours=3), status=BookingStatus.CANCELLED)
        for status in (BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.COMPLETED):
            await make_booking(session, pro, client, NOW + timedelta(days=1), status=status)

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 60, NOW)
        assert len(busy) == 3

    async def test_missing_duration_uses_evaluated_duration(self, session):
        pro = await make_pro(session)
        client = await make_client(session)
        start = NOW + timedelta(hours=2)
        await make_booking(session, pro, client, start, duration=None)

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 45, NOW)
        assert busy[0].end == start + timedelta(minutes=45)

    async def test_booking_in_progress_at_window_start(self, session):
        pro = await make_pro(session)
        client = await make_client(session)
        start = NOW - timedelta(hours=2)
        await make_booking(session, pro, client, start, duration=180)
        await make_booking(session, pro, client, NOW - timedelta(hours=3), duration=60)

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 60, NOW)
        assert [bi.start for bi in busy] == [start]

    async def test_only_unexpired_holds(self, session):
        pro = await make_pro(session)
        live = await make_hold(session, pro, NOW + timedelta(hours=4), expires_at=NOW + timedelta(minutes=5))
        await make_hold(session, pro, NOW + timedelta(hours=5), expires_at=NOW - timedelta(seconds=1))
        await make_hold(session, pro, NOW + timedelta(hours=6), expires_at=NOW)

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 90, NOW)
        assert [(bi.source, bi.source_id) for bi in busy] == [(BusySource.HOLD, live.id)]
        assert busy[0].end - busy[0].start == timedelta(minutes=90)

    async def test_other_professionals_and_excluded_booking(self, session):
        pro = await make_pro(session)
        other = await make_pro(session)
        client = await make_client(session)
        mine = await make_booking(session, pro, client, NOW + timedelta(hours=2))
        await make_booking(session, other, client, NOW + timedelta(hours=2))

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 60, NOW)
        assert [bi.source_id for bi in busy] == [mine.id]
        busy = await load_busy_intervals(
            session, pro.id, NOW, WINDOW_END, 60, NOW, exclude_booking_id=mine.id
        )
        assert busy == []

    async def test_blocks_overlapping_the_window(self, session):
        pro = await make_pro(session)
        other = await make_pro(session)
        inside = await make_block(session, pro, NOW + timedelta(hours=1), NOW + timedelta(hours=3))
        straddling = await make_block(session, pro, NOW - timedelta(hours=2), NOW + timedelta(minutes=30))
        await make_block(session, pro, NOW - timedelta(hours=3), NOW)  # ends at window start
        await make_block(session, other, NOW + timedelta(hours=1), NOW + timedelta(hours=2))

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 60, NOW)
        assert [(bi.source, bi.source_id) for bi in busy] == [
            (BusySource.BLOCK, straddling.id),
            (BusySource.BLOCK, inside.id),
        ]
        assert busy[1].end - busy[1].start == timedelta(hours=2)

        busy = await load_busy_intervals(session, pro.id, NOW, WINDOW_END, 60, NOW, include_blocks=False)
        assert busy == []
