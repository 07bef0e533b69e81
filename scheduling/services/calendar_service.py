"""
Calendar service - Admin calendar view over appointments and blocked dates.

Builds the merged event collection (appointment slots plus blocked days)
and keeps the board state that the reschedule flow updates optimistically
and reloads on failure.
"""

import logging
from datetime import date
from typing import Any, Iterable
from uuid import UUID

from database.models import AppointmentStatus
from scheduling.models import AppointmentRecord, BlockedDateRecord, CalendarEvent
from scheduling.services.blocked_date_service import expand_blocked_dates
from scheduling.services.slot_service import assign_slots
from scheduling.stores import AppointmentStore, BlockedDateStore

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    AppointmentStatus.PENDING: "#6b7280",
    AppointmentStatus.CONFIRMED: "#f59e0b",
    AppointmentStatus.COMPLETED: "#16a34a",
}
DEFAULT_EVENT_COLOR = "#6b7280"

VISIBLE_STATUSES = [
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.COMPLETED.value,
]


def _in_range(day: date, date_from: date | None, date_to: date | None) -> bool:
    if date_from is not None and day < date_from:
        return False
    if date_to is not None and day > date_to:
        return False
    return True


def build_calendar_events(
    appointments: Iterable[AppointmentRecord],
    blocked_dates: Iterable[BlockedDateRecord] = (),
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[CalendarEvent]:
    """
    Merge appointment slots and blocked days into one event collection.

    Voided appointments are never shown. Only confirmed appointments are
    draggable. Blocked days outside [date_from, date_to] are dropped.

    Returns:
        Appointment events (slot order) followed by blocked-day events
    """
    visible = {
        appt.id: appt
        for appt in appointments
        if appt.status != AppointmentStatus.VOIDED
    }

    events: list[CalendarEvent] = []
    for slot in assign_slots(visible.values()):
        appt = visible[slot.appointment_id]
        events.append(
            CalendarEvent(
                id=str(appt.id),
                title=appt.client_name or "Client",
                start=slot.start,
                end=slot.end,
                status=appt.status.value,
                draggable=appt.status == AppointmentStatus.CONFIRMED,
                color=STATUS_COLORS.get(appt.status, DEFAULT_EVENT_COLOR),
                kind="appointment",
                appointment_id=appt.id,
                appointment_date=appt.appointment_date,
            )
        )

    for event in expand_blocked_dates(blocked_dates):
        if _in_range(event.start.date(), date_from, date_to):
            events.append(event)

    return events


class CalendarBoard:
    """
    Appointments currently shown on the admin calendar.

    The board is the local state the reschedule flow updates before the
    store confirms. load() always replaces it with authoritative store
    state, discarding any local change.
    """

    def __init__(
        self,
        appointment_store: AppointmentStore,
        blocked_date_store: BlockedDateStore | None = None,
        statuses: list[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ):
        self.appointment_store = appointment_store
        self.blocked_date_store = blocked_date_store
        self.statuses = statuses or list(VISIBLE_STATUSES)
        self.date_from = date_from
        self.date_to = date_to
        self.appointments: dict[UUID, AppointmentRecord] = {}
        self.blocked_dates: list[BlockedDateRecord] = []

    def _filters(self) -> dict[str, Any]:
        filters: dict[str, Any] = {"status": self.statuses}
        if self.date_from is not None:
            filters["date_from"] = self.date_from
        if self.date_to is not None:
            filters["date_to"] = self.date_to
        return filters

    async def load(self) -> None:
        """Replace board state with the stores' current contents."""
        appointments = await self.appointment_store.list(self._filters())
        self.appointments = {appt.id: appt for appt in appointments}
        if self.blocked_date_store is not None:
            self.blocked_dates = await self.blocked_date_store.list()
        logger.debug(
            f"Calendar board loaded: {len(self.appointments)} appointments, "
            f"{len(self.blocked_dates)} blocked dates"
        )

    def get(self, appointment_id: UUID) -> AppointmentRecord | None:
        return self.appointments.get(appointment_id)

    def apply_local_change(
        self, appointment_id: UUID, fields: dict[str, Any]
    ) -> AppointmentRecord | None:
        """
        Apply a change to the local copy of one appointment.

        Returns:
            The record as it was before the change, or None if not on the board
        """
        previous = self.appointments.get(appointment_id)
        if previous is None:
            return None
        self.appointments[appointment_id] = previous.model_copy(update=fields)
        return previous

    def events(self) -> list[CalendarEvent]:
        return build_calendar_events(
            self.appointments.values(),
            self.blocked_dates,
            date_from=self.date_from,
            date_to=self.date_to,
        )
