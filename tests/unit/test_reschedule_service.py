"""
Unit tests for reschedule_service.

Tests cover:
- Validation before any store call
- Rejection of non-confirmed appointments without state change
- Optimistic board update and persisted date/time format
- Reconciliation reload on persistence failure
- Timezone handling of naive and aware start instants
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from database.models import AppointmentStatus
from scheduling.errors import AppointmentValidationError
from scheduling.services.calendar_service import CalendarBoard
from scheduling.services.reschedule_service import RescheduleCoordinator, schedule_fields


async def _coordinator(stores):
    board = CalendarBoard(stores.appointments, stores.blocked_dates)
    await board.load()
    return board, RescheduleCoordinator(board, stores.appointments)


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    """Input validation happens before any store call."""

    @pytest.mark.asyncio
    async def test_missing_id_raises(self, stores):
        stores.appointments.get = AsyncMock()
        stores.appointments.update = AsyncMock()
        coordinator = RescheduleCoordinator(CalendarBoard(stores.appointments), stores.appointments)

        with pytest.raises(AppointmentValidationError):
            await coordinator.reschedule(None, datetime(2024, 3, 5, 10, 0))

        stores.appointments.get.assert_not_called()
        stores.appointments.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_start_raises(self, stores):
        stores.appointments.update = AsyncMock()
        coordinator = RescheduleCoordinator(CalendarBoard(stores.appointments), stores.appointments)

        with pytest.raises(AppointmentValidationError):
            await coordinator.reschedule(uuid4(), None)

        stores.appointments.update.assert_not_called()


# ============================================================================
# Status guard
# ============================================================================


class TestStatusGuard:
    """Only confirmed appointments can move."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.COMPLETED, AppointmentStatus.PENDING, AppointmentStatus.VOIDED],
    )
    async def test_non_confirmed_rejected_without_change(self, factory, stores, status):
        appt = stores.appointments.add(factory.appointment(status=status))
        board, coordinator = await _coordinator(stores)

        result = await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 10, 0))

        assert result.success is False
        assert result.error_code == "NOT_RESCHEDULABLE"
        assert stores.appointments.updates == []
        assert stores.appointments.appointments[appt.id] == appt

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, stores):
        _, coordinator = await _coordinator(stores)

        result = await coordinator.reschedule(uuid4(), datetime(2024, 3, 9, 10, 0))

        assert result.success is False
        assert result.error_code == "APPOINTMENT_NOT_FOUND"


# ============================================================================
# Successful reschedule
# ============================================================================


class TestReschedule:
    """Optimistic update followed by persistence."""

    @pytest.mark.asyncio
    async def test_persists_local_date_and_time(self, factory, stores):
        appt = stores.appointments.add(factory.appointment(appointment_date=date(2024, 3, 4)))
        board, coordinator = await _coordinator(stores)

        result = await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 14, 30))

        assert result.success is True
        assert stores.appointments.updates == [
            (appt.id, {"appointment_date": date(2024, 3, 9), "appointment_time": "02:30 PM"})
        ]
        assert board.get(appt.id).appointment_time == "02:30 PM"

    @pytest.mark.asyncio
    async def test_event_moves_to_new_slot(self, factory, stores):
        appt = stores.appointments.add(factory.appointment(appointment_date=date(2024, 3, 4)))
        board, coordinator = await _coordinator(stores)

        await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 11, 0))

        (event,) = board.events()
        assert event.start.date() == date(2024, 3, 9)
        assert event.start.hour == 11

    @pytest.mark.asyncio
    async def test_optimistic_update_precedes_store_call(self, factory, stores):
        appt = stores.appointments.add(factory.appointment(appointment_date=date(2024, 3, 4)))
        board, coordinator = await _coordinator(stores)
        seen = {}
        original_update = stores.appointments.update

        async def spy_update(appointment_id, fields):
            seen["board_date"] = board.get(appointment_id).appointment_date
            return await original_update(appointment_id, fields)

        stores.appointments.update = spy_update

        await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 9, 0))

        assert seen["board_date"] == date(2024, 3, 9)

    @pytest.mark.asyncio
    async def test_appointment_not_on_board_read_from_store(self, factory, stores):
        board = CalendarBoard(stores.appointments)
        coordinator = RescheduleCoordinator(board, stores.appointments)
        appt = stores.appointments.add(factory.appointment())

        result = await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 9, 0))

        assert result.success is True
        assert result.appointment.appointment_date == date(2024, 3, 9)


# ============================================================================
# Failure reconciliation
# ============================================================================


class TestPersistenceFailure:
    """A failed store write reloads authoritative state."""

    @pytest.mark.asyncio
    async def test_failure_discards_optimistic_change(self, factory, stores):
        appt = stores.appointments.add(
            factory.appointment(appointment_date=date(2024, 3, 4), appointment_time="10:00 AM")
        )
        board, coordinator = await _coordinator(stores)
        stores.appointments.fail_on_update.add("*")
        list_calls_before = stores.appointments.list_calls

        result = await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 15, 0))

        assert result.success is False
        assert result.error_code == "PERSISTENCE_FAILED"
        assert stores.appointments.list_calls == list_calls_before + 1
        assert board.get(appt.id).appointment_date == date(2024, 3, 4)
        assert board.get(appt.id).appointment_time == "10:00 AM"

    @pytest.mark.asyncio
    async def test_failure_logged(self, factory, stores, caplog):
        appt = stores.appointments.add(factory.appointment())
        _, coordinator = await _coordinator(stores)
        stores.appointments.fail_on_update.add("*")

        await coordinator.reschedule(appt.id, datetime(2024, 3, 9, 15, 0))

        assert "Failed to persist reschedule" in caplog.text


# ============================================================================
# schedule_fields
# ============================================================================


class TestScheduleFields:
    """Conversion of a start instant into persisted fields."""

    def test_naive_is_local(self):
        fields = schedule_fields(datetime(2024, 3, 9, 8, 5))
        assert fields == {"appointment_date": date(2024, 3, 9), "appointment_time": "08:05 AM"}

    def test_aware_converted_to_local(self):
        # 23:30 UTC is 07:30 the next day in Manila (UTC+8)
        fields = schedule_fields(datetime(2024, 3, 9, 23, 30, tzinfo=timezone.utc))
        assert fields == {"appointment_date": date(2024, 3, 10), "appointment_time": "07:30 AM"}
