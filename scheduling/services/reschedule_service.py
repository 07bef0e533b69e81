"""
Reschedule service - Drag-and-drop rescheduling with optimistic updates.

Flow:
1. Validate input (before any store call)
2. Reject anything that is not a confirmed appointment
3. Apply the new date/time to the calendar board immediately
4. Persist through the appointment store
5. On store failure, reload the board from the store so the optimistic
   change is discarded

Overlapping start times are not rejected here; the slot service resolves
them when the calendar is rendered.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from database.models import AppointmentStatus
from scheduling.errors import AppointmentValidationError
from scheduling.models import LOCAL_TZ, AppointmentRecord
from scheduling.services.calendar_service import CalendarBoard
from scheduling.stores import AppointmentStore

logger = logging.getLogger(__name__)

TIME_FORMAT = "%I:%M %p"


@dataclass
class RescheduleResult:
    """
    Result of a reschedule attempt.

    Attributes:
        success: Whether the new date/time was persisted
        appointment_id: Appointment that was targeted
        error_code: NOT_RESCHEDULABLE, APPOINTMENT_NOT_FOUND or PERSISTENCE_FAILED
        error_message: Human readable reason if success is False
        appointment: Persisted appointment on success
    """
    success: bool
    appointment_id: Optional[UUID] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    appointment: Optional[AppointmentRecord] = None


def to_local(value: datetime) -> datetime:
    """Interpret naive datetimes as local time; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=LOCAL_TZ)
    return value.astimezone(LOCAL_TZ)


def schedule_fields(new_start: datetime) -> dict:
    """Persisted fields for a new start instant."""
    local = to_local(new_start)
    return {
        "appointment_date": local.date(),
        "appointment_time": local.strftime(TIME_FORMAT),
    }


class RescheduleCoordinator:
    """Moves confirmed appointments on the calendar."""

    def __init__(self, board: CalendarBoard, appointment_store: AppointmentStore):
        self.board = board
        self.appointment_store = appointment_store

    async def reschedule(self, appointment_id: UUID | None, new_start: datetime | None) -> RescheduleResult:
        """
        Move an appointment to a new start instant.

        Args:
            appointment_id: Appointment to move
            new_start: New start (naive values are local time)

        Returns:
            RescheduleResult

        Raises:
            AppointmentValidationError: If appointment_id or new_start is missing
        """
        if appointment_id is None:
            raise AppointmentValidationError("appointment_id is required")
        if not isinstance(new_start, datetime):
            raise AppointmentValidationError("new_start must be a datetime")

        current = self.board.get(appointment_id)
        if current is None:
            current = await self.appointment_store.get(appointment_id)
        if current is None:
            return RescheduleResult(
                success=False,
                appointment_id=appointment_id,
                error_code="APPOINTMENT_NOT_FOUND",
                error_message=f"Appointment {appointment_id} not found",
            )

        if current.status != AppointmentStatus.CONFIRMED:
            logger.info(
                f"Rejected reschedule of appointment {appointment_id} "
                f"with status {current.status.value}",
                extra={"appointment_id": str(appointment_id)},
            )
            return RescheduleResult(
                success=False,
                appointment_id=appointment_id,
                error_code="NOT_RESCHEDULABLE",
                error_message=f"Only confirmed appointments can be rescheduled (status: {current.status.value})",
            )

        fields = schedule_fields(new_start)
        self.board.apply_local_change(appointment_id, fields)

        try:
            updated = await self.appointment_store.update(appointment_id, fields)
        except Exception as e:
            logger.error(
                f"Failed to persist reschedule of appointment {appointment_id}: {e}",
                extra={"appointment_id": str(appointment_id)},
            )
            await self.board.load()
            return RescheduleResult(
                success=False,
                appointment_id=appointment_id,
                error_code="PERSISTENCE_FAILED",
                error_message=str(e),
            )

        if appointment_id in self.board.appointments:
            self.board.appointments[appointment_id] = updated

        logger.info(
            f"Appointment {appointment_id} rescheduled to "
            f"{fields['appointment_date']} {fields['appointment_time']}",
            extra={"appointment_id": str(appointment_id)},
        )
        return RescheduleResult(
            success=True,
            appointment_id=appointment_id,
            appointment=updated,
        )
