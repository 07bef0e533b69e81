"""
Slot service - Deterministic calendar time slots for appointments.

Appointments are grouped per calendar date. On each date:
1. Appointments with an admin-set time keep that time and come first,
   ordered by it.
2. The rest get one-hour slots from a per-date cursor starting at
   SLOT_DAY_START_HOUR. The cursor skips hours already taken on that date
   while a free hour remains, and wraps back to the start hour instead of
   running past SLOT_DAY_END_HOUR.

The result depends only on the appointments' dates, times, creation order
and ids, so recomputing it over an unchanged set yields identical slots.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable
from uuid import UUID

from dateutil import parser as date_parser

from scheduling.models import LOCAL_TZ, AppointmentRecord
from shared.config import get_settings

logger = logging.getLogger(__name__)

# Reference date for parsing bare time strings
_PARSE_DEFAULT = datetime(2000, 1, 1)
_EPOCH = datetime(1970, 1, 1, tzinfo=LOCAL_TZ)


@dataclass(frozen=True)
class Slot:
    """Display interval assigned to one appointment."""

    appointment_id: UUID
    start: datetime
    end: datetime
    explicit: bool


def parse_explicit_time(value: str | None) -> time | None:
    """
    Parse an admin-set appointment time.

    Accepts 12-hour ("02:30 PM") and 24-hour ("14:30", "14:30:00") strings.

    Returns:
        Parsed time, or None when empty or unparseable
    """
    if value is None or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip(), default=_PARSE_DEFAULT)
    except (ValueError, OverflowError):
        logger.warning(f"Ignoring unparseable appointment time: {value!r}")
        return None
    return parsed.time().replace(tzinfo=None)


def _untimed_sort_key(appointment: AppointmentRecord) -> tuple:
    created = appointment.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=LOCAL_TZ)
    return (
        created is None,
        created or _EPOCH,
        str(appointment.id),
    )


def _overlaps(start: datetime, end: datetime, taken: list[tuple[datetime, datetime]]) -> bool:
    return any(start < t_end and t_start < end for t_start, t_end in taken)


def _assign_date(
    day: date,
    appointments: list[AppointmentRecord],
    start_hour: int,
    end_hour: int,
    duration: timedelta,
) -> list[Slot]:
    timed: list[tuple[time, AppointmentRecord]] = []
    untimed: list[AppointmentRecord] = []

    for appt in appointments:
        explicit = parse_explicit_time(appt.appointment_time)
        if explicit is None:
            untimed.append(appt)
        else:
            timed.append((explicit, appt))

    timed.sort(key=lambda item: (item[0], str(item[1].id)))
    untimed.sort(key=_untimed_sort_key)

    slots: list[Slot] = []
    taken: list[tuple[datetime, datetime]] = []

    for explicit, appt in timed:
        start = datetime.combine(day, explicit, tzinfo=LOCAL_TZ)
        slots.append(Slot(appt.id, start, start + duration, explicit=True))
        taken.append((start, start + duration))

    hours = list(range(start_hour, end_hour))
    cursor = 0

    for appt in untimed:
        chosen = None
        for _ in range(len(hours)):
            candidate = datetime.combine(day, time(hours[cursor]), tzinfo=LOCAL_TZ)
            cursor = (cursor + 1) % len(hours)
            if not _overlaps(candidate, candidate + duration, taken):
                chosen = candidate
                break

        if chosen is None:
            # Day is full: keep cycling and accept the overlap
            chosen = datetime.combine(day, time(hours[cursor]), tzinfo=LOCAL_TZ)
            cursor = (cursor + 1) % len(hours)

        slots.append(Slot(appt.id, chosen, chosen + duration, explicit=False))
        taken.append((chosen, chosen + duration))

    return slots


def assign_slots(appointments: Iterable[AppointmentRecord]) -> list[Slot]:
    """
    Assign display slots to appointments.

    Args:
        appointments: Appointments visible in the calendar window

    Returns:
        Slots ordered by date, then explicit-time slots, then cursor slots
    """
    settings = get_settings()
    start_hour = settings.SLOT_DAY_START_HOUR
    end_hour = settings.SLOT_DAY_END_HOUR
    if end_hour <= start_hour:
        raise ValueError(
            f"SLOT_DAY_END_HOUR ({end_hour}) must be after SLOT_DAY_START_HOUR ({start_hour})"
        )
    duration = timedelta(minutes=settings.SLOT_DURATION_MINUTES)

    by_date: dict[date, list[AppointmentRecord]] = defaultdict(list)
    for appt in appointments:
        by_date[appt.appointment_date].append(appt)

    slots: list[Slot] = []
    for day in sorted(by_date):
        slots.extend(_assign_date(day, by_date[day], start_hour, end_hour, duration))
    return slots
