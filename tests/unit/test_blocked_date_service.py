"""
Unit tests for blocked_date_service.

Tests cover:
- expand_blocked_date: inclusive per-day expansion, styling, single day,
  month boundary, inverted ranges
- expand_blocked_dates: multiple ranges
"""

from datetime import date, datetime, time

from scheduling.models import LOCAL_TZ
from scheduling.services.blocked_date_service import (
    BLOCKED_COLOR,
    expand_blocked_date,
    expand_blocked_dates,
)


class TestExpandBlockedDate:
    """Tests for expand_blocked_date."""

    def test_three_day_range_gives_three_entries(self, factory):
        blocked = factory.blocked_date(date(2024, 1, 10), date(2024, 1, 12), name="Team outing")

        events = expand_blocked_date(blocked)

        assert len(events) == 3
        assert [e.start.date() for e in events] == [
            date(2024, 1, 10),
            date(2024, 1, 11),
            date(2024, 1, 12),
        ]
        assert all(e.draggable is False for e in events)
        assert all(e.color == BLOCKED_COLOR for e in events)
        assert all(e.kind == "blocked" and e.status == "blocked" for e in events)
        assert events[0].title == "Blocked: Team outing"

    def test_entries_cover_whole_day(self, factory):
        blocked = factory.blocked_date(date(2024, 1, 10), date(2024, 1, 10))

        (event,) = expand_blocked_date(blocked)

        assert event.start == datetime(2024, 1, 10, 0, 0, tzinfo=LOCAL_TZ)
        assert event.end == datetime.combine(date(2024, 1, 10), time.max, tzinfo=LOCAL_TZ)

    def test_ids_are_unique_per_day(self, factory):
        blocked = factory.blocked_date(date(2024, 1, 30), date(2024, 2, 2))

        events = expand_blocked_date(blocked)

        assert len(events) == 4
        assert len({e.id for e in events}) == 4
        assert events[-1].start.date() == date(2024, 2, 2)

    def test_reason_carried(self, factory):
        blocked = factory.blocked_date(date(2024, 1, 1), date(2024, 1, 1), reason="New Year")
        assert expand_blocked_date(blocked)[0].blocked_reason == "New Year"

    def test_inverted_range_is_empty(self, factory, caplog):
        blocked = factory.blocked_date(date(2024, 1, 12), date(2024, 1, 10))

        assert expand_blocked_date(blocked) == []
        assert "before from_date" in caplog.text


class TestExpandBlockedDates:
    """Tests for expand_blocked_dates."""

    def test_multiple_ranges_concatenated(self, factory):
        ranges = [
            factory.blocked_date(date(2024, 1, 10), date(2024, 1, 11)),
            factory.blocked_date(date(2024, 2, 1), date(2024, 2, 1)),
        ]
        assert len(expand_blocked_dates(ranges)) == 3

    def test_no_ranges(self):
        assert expand_blocked_dates([]) == []
