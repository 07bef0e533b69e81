"""
Blocked date service - Expands closure ranges into per-day calendar entries.

A blocked date covers an inclusive range of calendar days. Each day becomes
one non-draggable all-day entry that is merged with the appointment events.
"""

import logging
from datetime import datetime, time
from typing import Iterable

from dateutil.rrule import DAILY, rrule

from scheduling.models import LOCAL_TZ, BlockedDateRecord, CalendarEvent

logger = logging.getLogger(__name__)

BLOCKED_STATUS = "blocked"
BLOCKED_COLOR = "#dc2626"


def expand_blocked_date(blocked_date: BlockedDateRecord) -> list[CalendarEvent]:
    """
    Expand one blocked date range into per-day calendar entries.

    Args:
        blocked_date: Range with inclusive from_date and to_date

    Returns:
        One entry per day in range (empty when the range is inverted)
    """
    if blocked_date.to_date < blocked_date.from_date:
        logger.warning(
            f"Blocked date {blocked_date.id} has to_date {blocked_date.to_date} "
            f"before from_date {blocked_date.from_date}, skipping"
        )
        return []

    days = rrule(
        DAILY,
        dtstart=datetime.combine(blocked_date.from_date, time.min),
        until=datetime.combine(blocked_date.to_date, time.min),
    )

    events = []
    for occurrence in days:
        day = occurrence.date()
        events.append(
            CalendarEvent(
                id=f"blocked-{blocked_date.id}-{day.isoformat()}",
                title=f"Blocked: {blocked_date.name}",
                start=datetime.combine(day, time.min, tzinfo=LOCAL_TZ),
                end=datetime.combine(day, time.max, tzinfo=LOCAL_TZ),
                status=BLOCKED_STATUS,
                draggable=False,
                color=BLOCKED_COLOR,
                kind="blocked",
                blocked_name=blocked_date.name,
                blocked_reason=blocked_date.reason,
            )
        )
    return events


def expand_blocked_dates(blocked_dates: Iterable[BlockedDateRecord]) -> list[CalendarEvent]:
    """Expand every blocked date range, in input order."""
    events: list[CalendarEvent] = []
    for blocked_date in blocked_dates:
        events.extend(expand_blocked_date(blocked_date))
    return events
